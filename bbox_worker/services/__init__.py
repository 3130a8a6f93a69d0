"""
BBox Worker Services

- config - startup validation
- device - Modbus sessions, register decoding, variable reads
- acquisition - catalog providers and the poll loop
"""
