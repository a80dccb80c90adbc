"""
Access gate for series reads.

The only legitimate reader of a user's metric series is that same user:
identity equality is both necessary and sufficient. Broader policies (roles,
delegation) belong in a subclass overriding `is_permitted`.
"""

from typing import Optional

from sensor_metrics.types import AuthorizationDecision


class AccessGate:
    """Exact-match, self-access-only authorization. Pure and side-effect free."""

    def is_permitted(self, caller_identity: str, requested_owner: str) -> bool:
        return caller_identity == requested_owner

    def authorize(
        self,
        caller_identity: Optional[str],
        requested_owner: Optional[str],
    ) -> AuthorizationDecision:
        """
        Decide whether the caller may read the requested owner's series.

        Args:
            caller_identity: Identity resolved by the identity oracle, None if
                the caller is unauthenticated
            requested_owner: Owner whose series is requested

        Returns:
            Permitted(requested_owner) or Denied
        """
        if not caller_identity or not requested_owner:
            return AuthorizationDecision.deny()
        if not self.is_permitted(caller_identity, requested_owner):
            return AuthorizationDecision.deny()
        return AuthorizationDecision.permit(requested_owner)
