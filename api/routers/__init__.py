"""
API routers for the sensor metrics engine.

This package contains all FastAPI router modules for different API endpoints.
"""

__all__ = ["health", "series", "time", "metrics"]
