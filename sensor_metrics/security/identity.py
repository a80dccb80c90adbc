"""
Identity oracle contract and a token-table implementation.

The engine never verifies identities itself: it trusts whatever the oracle
resolves as the ground truth for who is calling.
"""

import hmac
import logging
from typing import Any, Dict, Mapping, Optional, Protocol

from sensor_metrics.config import parse_api_tokens

logger = logging.getLogger(__name__)


class IdentityOracle(Protocol):
    """Resolves the caller of a request, or None if unauthenticated."""

    def resolve_caller_identity(self, request_context: Mapping[str, Any]) -> Optional[str]:
        ...


class TokenIdentityOracle:
    """
    Resolve callers from a static token table.

    The request context carries the raw credentials; a bearer token in
    `authorization` or a key in `api_key` is looked up in the table.
    """

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        """
        Args:
            tokens: Mapping of token to owner id (defaults to API_TOKENS)
        """
        self._tokens = dict(tokens) if tokens is not None else parse_api_tokens()

    @staticmethod
    def extract_token(request_context: Mapping[str, Any]) -> Optional[str]:
        authorization = request_context.get("authorization") or ""
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        api_key = request_context.get("api_key")
        return api_key.strip() if api_key else None

    def resolve_caller_identity(self, request_context: Mapping[str, Any]) -> Optional[str]:
        token = self.extract_token(request_context)
        if not token:
            return None

        for known, owner in self._tokens.items():
            if hmac.compare_digest(known.encode("utf-8"), token.encode("utf-8")):
                return owner

        logger.debug("Unknown API token presented")
        return None
