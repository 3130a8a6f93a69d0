"""
Configuration checks run once at startup.
"""

from .validator import ConfigValidator

__all__ = ["ConfigValidator"]
