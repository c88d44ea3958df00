"""
Gated generation.

Authorizes a request against the ledger, invokes the generation backend
and attributes the usage on success.

Request protocol:
1. No identity - IdentityRequired, nothing else happens
2. Ledger denies the claim - PaymentRequired, backend is not called
3. Backend fails or times out - GenerationFailed, claim released,
   no usage recorded
4. Success - usage recorded exactly once, artifact handed to delivery
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Optional

from .delivery import DeliverySession, DeliveryStream
from .errors import GenerationFailed, IdentityRequired, PaymentRequired
from .generation import AppDetails, AppPricing, Artifact, GenerationBackend, GenerationRequest
from .ledger import EntitlementLedger

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Gates, invokes and attributes generation requests.

    The ledger's per-identity lock covers only the claim and the final
    attribution; the backend call runs without it, so slow generations
    for one identity never hold up any other identity.
    """

    def __init__(
        self,
        ledger: EntitlementLedger,
        backend: GenerationBackend,
        delivery: Optional[DeliveryStream] = None,
        timeout: Optional[float] = None,
        max_workers: int = 8
    ):
        """Initialize the orchestrator.

        Args:
            ledger: Entitlement ledger consulted for every request
            backend: External generation backend
            delivery: Delivery stream for results (a new one if omitted)
            timeout: Seconds to wait for the backend; None waits forever
            max_workers: Backend calls allowed in flight when a timeout is set

        Raises:
            ValueError: If timeout or max_workers is not positive
        """
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be > 0")
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")

        self.ledger = ledger
        self.backend = backend
        self.delivery = delivery or DeliveryStream()
        self.timeout = timeout
        self._executor = None
        if timeout is not None:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="paygate-generate"
            )

    def generate(self, request: GenerationRequest) -> DeliverySession:
        """Run one generation request through the gate.

        Args:
            request: Identity and prompt parameters

        Returns:
            DeliverySession streaming the generated artifact

        Raises:
            IdentityRequired: If the request carries no identity
            PaymentRequired: If the ledger denies the request
            GenerationFailed: If the backend fails or times out
        """
        identity = request.identity
        if identity is None or not identity.strip():
            raise IdentityRequired()

        require_payment = request.details.pricing == AppPricing.PAID
        decision = self.ledger.claim(identity, require_payment=require_payment)
        if not decision.allowed:
            raise PaymentRequired(decision.reason)

        succeeded = False
        try:
            artifact = self._invoke(request.details)
            succeeded = True
        except GenerationFailed as e:
            logger.warning("Generation failed for %s: %s", identity, e.reason)
            raise
        finally:
            if not succeeded:
                self.ledger.release(identity)

        self.ledger.record_usage(identity)
        return self.delivery.start(artifact)

    def _invoke(self, details: AppDetails) -> Artifact:
        try:
            if self._executor is None:
                artifact = self.backend.generate(details)
            else:
                future = self._executor.submit(self.backend.generate, details)
                artifact = future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            raise GenerationFailed(f"timed out after {self.timeout}s") from None
        except GenerationFailed:
            raise
        except Exception as e:
            raise GenerationFailed(str(e) or type(e).__name__) from e

        if artifact is None or len(artifact) == 0:
            raise GenerationFailed("no content generated")
        return artifact

    def close(self) -> None:
        """Stop accepting backend work and cancel open deliveries.

        In-flight backend calls are not awaited.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        self.delivery.close()
