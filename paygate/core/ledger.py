"""
Entitlement ledger.

Single authority for whether an identity may generate right now, and the
only mutator of usage and payment state.

Concurrency model:
- Each identity owns its own lock; operations on different identities
  never wait on each other.
- A claim reserves an entitlement while the external generation call
  runs outside the lock. The claim is later turned into a recorded usage
  on success or released on failure, so two concurrent requests can
  never both spend the same free use.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, FrozenSet, Optional, Set, Tuple

from .errors import PaymentReason
from .identity import require_identity
from .policy import OneTimeUnlockPolicy, PaymentPolicy

logger = logging.getLogger(__name__)


class Decision(Enum):
    """Outcome of an authorization check."""
    ALLOWED = auto()
    DENIED = auto()


@dataclass(frozen=True)
class AuthorizationDecision:
    """Authorization result with the denial reason when denied."""
    decision: Decision
    reason: Optional[PaymentReason] = None

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOWED


ALLOWED = AuthorizationDecision(Decision.ALLOWED)


@dataclass(frozen=True)
class EntitlementRecord:
    """Immutable view of one identity's entitlement state."""
    identity: str
    usage_count: int
    has_paid: bool
    applied_transaction_hashes: FrozenSet[str]
    pending_claims: int = 0

    @property
    def payment_count(self) -> int:
        """Number of distinct payments applied."""
        return len(self.applied_transaction_hashes)


@dataclass
class _Account:
    usage_count: int = 0
    pending_claims: int = 0
    transaction_hashes: Set[str] = field(default_factory=set)


class EntitlementLedger:
    """Process-local, per-identity entitlement state.

    Unknown identities get a zero-state record on first sight, so a
    never-seen identity is authorized for its free use.
    """

    def __init__(self, policy: Optional[PaymentPolicy] = None):
        """Initialize the ledger.

        Args:
            policy: Payment-cycle policy (defaults to one free use, then
                a one-time unlock)
        """
        self.policy = policy or OneTimeUnlockPolicy()
        self._registry_lock = threading.Lock()
        self._partitions: Dict[str, Tuple[threading.Lock, _Account]] = {}

    def _partition(self, identity: str) -> Tuple[threading.Lock, _Account]:
        identity = require_identity(identity)
        with self._registry_lock:
            partition = self._partitions.get(identity)
            if partition is None:
                partition = (threading.Lock(), _Account())
                self._partitions[identity] = partition
                logger.debug("Created entitlement record for %s", identity)
            return partition

    def _evaluate(self, account: _Account, require_payment: bool) -> AuthorizationDecision:
        payments = len(account.transaction_hashes)
        if require_payment and payments == 0:
            return AuthorizationDecision(Decision.DENIED, PaymentReason.PAID_APP)
        spent = account.usage_count + account.pending_claims
        if self.policy.allows(spent, payments):
            return ALLOWED
        return AuthorizationDecision(Decision.DENIED, PaymentReason.FREE_USE_EXHAUSTED)

    def register(self, identity: str) -> EntitlementRecord:
        """Ensure a record exists for a freshly verified identity."""
        self._partition(identity)
        return self.snapshot(identity)

    def is_authorized(self, identity: str, require_payment: bool = False) -> AuthorizationDecision:
        """Check whether the identity may generate now.

        In-flight claims count as spent, so a concurrent check cannot
        observe a free use that another request is already consuming.

        Args:
            identity: Verified identity token
            require_payment: Deny unless at least one payment is on record

        Returns:
            ALLOWED, or DENIED with the reason payment is needed
        """
        lock, account = self._partition(identity)
        with lock:
            return self._evaluate(account, require_payment)

    def claim(self, identity: str, require_payment: bool = False) -> AuthorizationDecision:
        """Atomically authorize and reserve one generation.

        An allowed claim must be followed by exactly one record_usage()
        or release() call for the same identity.
        """
        lock, account = self._partition(identity)
        with lock:
            decision = self._evaluate(account, require_payment)
            if decision.allowed:
                account.pending_claims += 1
        if not decision.allowed:
            logger.debug("Denied %s: %s", identity, decision.reason.value)
        return decision

    def release(self, identity: str) -> bool:
        """Drop a pending claim without recording usage.

        Returns:
            False if the identity held no pending claim
        """
        lock, account = self._partition(identity)
        with lock:
            if account.pending_claims == 0:
                released = False
            else:
                account.pending_claims -= 1
                released = True
        if not released:
            logger.warning("No pending claim to release for %s", identity)
        return released

    def record_usage(self, identity: str) -> None:
        """Record exactly one successful generation.

        Consumes a pending claim if the identity holds one.
        """
        lock, account = self._partition(identity)
        with lock:
            if account.pending_claims > 0:
                account.pending_claims -= 1
            account.usage_count += 1
            usage_count = account.usage_count
        logger.info("Recorded usage for %s (usage_count=%d)", identity, usage_count)

    def apply_payment(self, identity: str, transaction_hash: str) -> bool:
        """Apply a payment at most once per transaction hash.

        Args:
            identity: Identity the payment belongs to
            transaction_hash: Normalised transaction hash

        Returns:
            True if applied, False if the hash was already applied
        """
        if not transaction_hash:
            raise ValueError("transaction_hash is required and cannot be empty")

        lock, account = self._partition(identity)
        with lock:
            if transaction_hash in account.transaction_hashes:
                return False
            account.transaction_hashes.add(transaction_hash)
        logger.info("Applied payment %s for %s", transaction_hash, identity)
        return True

    def snapshot(self, identity: str) -> EntitlementRecord:
        """Return a read-only copy of the identity's record."""
        lock, account = self._partition(identity)
        with lock:
            return EntitlementRecord(
                identity=identity,
                usage_count=account.usage_count,
                has_paid=bool(account.transaction_hashes),
                applied_transaction_hashes=frozenset(account.transaction_hashes),
                pending_claims=account.pending_claims
            )
