"""
Payment notification recording.

Turns untrusted, possibly duplicated notifications from the payment rail
into at-most-once ledger mutations.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from .identity import require_identity
from .ledger import EntitlementLedger
from .pricing import ONE_TIME_USAGE_FEE_WEI, normalize_transaction_hash, parse_amount

logger = logging.getLogger(__name__)


class RecordOutcome(Enum):
    """Result of recording a payment notification."""
    APPLIED = auto()
    ALREADY_APPLIED = auto()
    REJECTED = auto()


class RejectionReason(Enum):
    """Why a notification was discarded."""
    INVALID_AMOUNT = "invalid amount"


@dataclass(frozen=True)
class TransactionNotification:
    """Payment completion reported by the payment rail."""
    identity: str
    transaction_hash: str
    amount: Union[int, str]


@dataclass(frozen=True)
class RecordResult:
    """Outcome of TransactionRecorder.record()."""
    outcome: RecordOutcome
    transaction_hash: str
    reason: Optional[RejectionReason] = None


class TransactionRecorder:
    """Applies payment notifications to the ledger idempotently.

    Notifications may arrive any number of times and in any order across
    identities. Duplicates are absorbed as ALREADY_APPLIED and never
    reported as errors.
    """

    def __init__(self, ledger: EntitlementLedger, fee_wei: int = ONE_TIME_USAGE_FEE_WEI):
        """Initialize the recorder.

        Args:
            ledger: Ledger receiving the payments
            fee_wei: Exact amount a valid payment must carry
        """
        if fee_wei <= 0:
            raise ValueError("fee_wei must be > 0")
        self.ledger = ledger
        self.fee_wei = fee_wei

    def record(self, notification: TransactionNotification) -> RecordResult:
        """Validate and apply a single notification.

        Args:
            notification: Notification from the payment rail

        Returns:
            RecordResult with APPLIED, ALREADY_APPLIED or REJECTED

        Raises:
            ValueError: If identity or transaction hash is malformed
        """
        require_identity(notification.identity)
        transaction_hash = normalize_transaction_hash(notification.transaction_hash)

        try:
            amount = parse_amount(notification.amount)
        except ValueError:
            amount = None

        if amount != self.fee_wei:
            logger.warning(
                "Rejected payment %s for %s: amount %r does not match fee %d",
                transaction_hash, notification.identity, notification.amount, self.fee_wei
            )
            return RecordResult(
                RecordOutcome.REJECTED,
                transaction_hash,
                RejectionReason.INVALID_AMOUNT
            )

        if self.ledger.apply_payment(notification.identity, transaction_hash):
            return RecordResult(RecordOutcome.APPLIED, transaction_hash)

        logger.debug("Payment %s for %s already applied", transaction_hash, notification.identity)
        return RecordResult(RecordOutcome.ALREADY_APPLIED, transaction_hash)
