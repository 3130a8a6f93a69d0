"""
BBox Modbus Worker

Polls data sources -> equipment -> variables over Modbus TCP and appends
decoded float readings to date-partitioned CSV files.
"""

__version__ = "1.0.0"
