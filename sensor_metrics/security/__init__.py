"""
Authorization for series reads: the access gate and the identity oracle.
"""

from sensor_metrics.security.access import AccessGate
from sensor_metrics.security.identity import IdentityOracle, TokenIdentityOracle

__all__ = [
    "AccessGate",
    "IdentityOracle",
    "TokenIdentityOracle",
]
