"""
Sensor metrics series engine.

Stores per-user metric samples in Redis and serves authorized range queries
over half-open time windows.
"""

__version__ = "1.0.0"
