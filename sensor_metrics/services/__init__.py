"""
Service layer: authorized operations composed from storage and security.
"""

from sensor_metrics.services.series_query import SeriesQueryService

__all__ = ["SeriesQueryService"]
