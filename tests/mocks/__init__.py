"""
Mock implementations for testing.
"""

from tests.mocks.storage import MockStoreClient

__all__ = [
    "MockStoreClient",
]
