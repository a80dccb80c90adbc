"""
HTTP API for the sensor metrics engine.
"""

__version__ = "1.0.0"
