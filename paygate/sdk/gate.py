"""
Caller-facing gate.

Wires the ledger, payment recorder, orchestrator and delivery stream
together behind the three caller operations: verify, generate and
notify payment.
"""

import logging
from typing import Any, Dict, Optional, Union

from ..config.loader import GateConfig, default_config, load_gate_config
from ..core.delivery import DeliverySession, DeliveryStream
from ..core.generation import AppDetails, GenerationBackend, GenerationRequest
from ..core.identity import IdentityAssertion, IdentityVerifier
from ..core.ledger import EntitlementLedger, EntitlementRecord
from ..core.orchestrator import GenerationOrchestrator
from ..core.transactions import RecordResult, TransactionNotification, TransactionRecorder
from .openai_backend import OpenAIGenerationBackend

logger = logging.getLogger(__name__)


class EntitlementGate:
    """One-free-use, then pay, gate in front of a generation backend."""

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        backend: Optional[GenerationBackend] = None,
        verifier: Optional[IdentityVerifier] = None
    ):
        """Initialize the gate.

        Args:
            config: Gate configuration (defaults used if omitted)
            backend: Generation backend (OpenAI backend built from config if omitted)
            verifier: Identity verifier used by verify()
        """
        self.config = config or default_config()
        self.verifier = verifier

        if backend is None:
            backend = OpenAIGenerationBackend(
                model=self.config.generation.model,
                chunk_size=self.config.delivery.chunk_size
            )

        self.ledger = EntitlementLedger(self.config.build_policy())
        self.recorder = TransactionRecorder(self.ledger, self.config.payment.fee_wei)
        self.delivery = DeliveryStream(self.config.delivery.chunk_delay_seconds)
        self.orchestrator = GenerationOrchestrator(
            ledger=self.ledger,
            backend=backend,
            delivery=self.delivery,
            timeout=self.config.generation.timeout_seconds,
            max_workers=self.config.generation.max_workers
        )

    @classmethod
    def from_config_file(cls, path: str, **kwargs: Any) -> "EntitlementGate":
        return cls(config=load_gate_config(path), **kwargs)

    def verify(self, proof: Any) -> IdentityAssertion:
        """Verify a proof and register the resulting identity.

        Raises:
            RuntimeError: If the gate has no verifier
            VerificationFailed: If the verifier rejects the proof
        """
        if self.verifier is None:
            raise RuntimeError("No identity verifier configured")
        assertion = self.verifier.verify(proof)
        self.ledger.register(assertion.identity)
        logger.info("Verified identity %s", assertion.identity)
        return assertion

    def generate(
        self,
        identity: Optional[str],
        details: Union[AppDetails, Dict[str, Any]]
    ) -> DeliverySession:
        """Generate for an identity; see GenerationOrchestrator.generate()."""
        if isinstance(details, dict):
            details = AppDetails.from_dict(details)
        return self.orchestrator.generate(GenerationRequest(identity=identity, details=details))

    def notify_payment(
        self,
        identity: str,
        transaction_hash: str,
        amount: Union[int, str]
    ) -> RecordResult:
        """Record a payment notification from the payment rail."""
        return self.recorder.record(TransactionNotification(
            identity=identity,
            transaction_hash=transaction_hash,
            amount=amount
        ))

    def cancel(self, session_id: str) -> bool:
        return self.delivery.cancel(session_id)

    def snapshot(self, identity: str) -> EntitlementRecord:
        return self.ledger.snapshot(identity)

    def close(self) -> None:
        self.orchestrator.close()
