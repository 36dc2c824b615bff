"""
KIB movie database API
"""

__version__ = "1.0.0"
