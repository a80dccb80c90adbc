"""
FastAPI dependency injection providers.

This module provides the store client, the query service and the caller
identity to the routers.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from sensor_metrics.security.identity import IdentityOracle
from sensor_metrics.services.series_query import SeriesQueryService
from sensor_metrics.storage.redis import RedisStoreClient


async def get_store_client() -> Optional[RedisStoreClient]:
    """
    Get the Redis store client from application state.

    Returns:
        Store client or None if not initialized
    """
    from api.main import app_state
    return app_state.store_client


async def get_query_service() -> SeriesQueryService:
    """
    Get the series query service from application state.

    Raises:
        HTTPException: If the service is not initialized
    """
    from api.main import app_state

    if app_state.query_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Series query service not initialized"
        )

    return app_state.query_service


def get_identity_oracle() -> IdentityOracle:
    """Get the identity oracle from application state."""
    from api.main import app_state
    return app_state.identity_oracle


async def get_caller_identity(
    authorization: Annotated[Optional[str], Header()] = None,
    x_api_key: Annotated[Optional[str], Header()] = None,
    oracle: IdentityOracle = Depends(get_identity_oracle),
) -> Optional[str]:
    """
    Resolve who is calling.

    Args:
        authorization: `Bearer <token>` header
        x_api_key: Token from the X-API-Key header

    Returns:
        Caller identity, or None if unauthenticated
    """
    if oracle is None:
        return None
    return oracle.resolve_caller_identity({
        "authorization": authorization,
        "api_key": x_api_key,
    })
