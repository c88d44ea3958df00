"""
Error taxonomy for gated generation.

Every error a caller can observe from the gate derives from GateError
and carries a machine-readable attribute, so callers can branch on
the failure without parsing messages.
"""

from enum import Enum


class GateError(Exception):
    """Base class for all user-visible gate failures."""


class IdentityRequired(GateError):
    """Raised when a request arrives without a verified identity."""
    def __init__(self, message: str = "identity verification is required"):
        super().__init__(message)


class PaymentReason(Enum):
    """Why a generation needs a payment first."""
    FREE_USE_EXHAUSTED = "free use exhausted"
    PAID_APP = "paid apps require payment"


class PaymentRequired(GateError):
    """Raised when the ledger denies a generation pending payment."""
    def __init__(self, reason: PaymentReason = PaymentReason.FREE_USE_EXHAUSTED):
        super().__init__(f"payment required: {reason.value}")
        self.reason = reason


class GenerationFailed(GateError):
    """Raised when the generation backend fails or times out.

    The reason is preserved so it can be surfaced to the caller.
    """
    def __init__(self, reason: str):
        super().__init__(f"generation failed: {reason}")
        self.reason = reason


class VerificationFailed(GateError):
    """Raised by identity verifiers when a proof is not accepted."""
    def __init__(self, reason: str):
        super().__init__(f"identity verification failed: {reason}")
        self.reason = reason
