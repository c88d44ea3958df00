"""
Verified identities.

The gate never derives identities itself; it accepts the result of an
external verification step and looks records up by the returned token.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class IdentityAssertion:
    """Successful result of an external identity verification.

    The identity is an opaque, stable token unique per real-world user.
    """
    identity: str
    verified_at: datetime
    issuer: Optional[str] = None

    def __post_init__(self):
        """Validate the identity token is present."""
        if not self.identity or not self.identity.strip():
            raise ValueError("identity is required and cannot be empty")


class IdentityVerifier(Protocol):
    """External collaborator that turns a proof into an identity.

    Implementations raise VerificationFailed when the proof is rejected.
    """

    def verify(self, proof: Any) -> IdentityAssertion:
        ...


def require_identity(identity: Optional[str]) -> str:
    """Return the identity token, rejecting blank values.

    Raises:
        ValueError: If identity is missing or blank
    """
    if identity is None or not str(identity).strip():
        raise ValueError("identity is required and cannot be empty")
    return str(identity)
