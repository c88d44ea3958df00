"""
Payment-cycle policies.

A policy decides, from usage and payment counts alone, whether one more
generation is permitted. The ledger consults whichever policy it was
built with, so the charging model can change without touching it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class PaymentPolicy(ABC):
    """Strategy interface for entitlement decisions."""

    @abstractmethod
    def allows(self, usage_count: int, payment_count: int) -> bool:
        """Return True if one more generation is permitted."""


@dataclass(frozen=True)
class OneTimeUnlockPolicy(PaymentPolicy):
    """Free uses first, then a single payment unlocks unlimited use."""
    free_uses: int = 1

    def __post_init__(self):
        if self.free_uses < 0:
            raise ValueError("free_uses must be >= 0")

    def allows(self, usage_count: int, payment_count: int) -> bool:
        return usage_count < self.free_uses or payment_count > 0


@dataclass(frozen=True)
class PerBlockPolicy(PaymentPolicy):
    """Each payment buys a block of further uses."""
    free_uses: int = 1
    uses_per_payment: int = 10

    def __post_init__(self):
        if self.free_uses < 0:
            raise ValueError("free_uses must be >= 0")
        if self.uses_per_payment <= 0:
            raise ValueError("uses_per_payment must be > 0")

    def allows(self, usage_count: int, payment_count: int) -> bool:
        allowance = self.free_uses + payment_count * self.uses_per_payment
        return usage_count < allowance
