import logging
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal


logger = logging.getLogger(__name__)


@dataclass
class ReversalResult:
    success: bool
    external_reference: str | None = None
    message: str | None = None


class MockReversalProvider:
    """
    Stand-in for the mobile-money settlement network's reversal call.

    Behavior:
    - Always accepts the reversal unless the payment reference starts with "0000" (simulated failure).
    """

    def _ref(self) -> str:
        return f"REV-MOCK-{int(time.time())}-{secrets.token_hex(3)}"

    def reverse(
        self,
        *,
        payment_reference: str,
        external_reference: str | None,
        amount: Decimal,
        payment_method: str,
        reason: str,
    ) -> ReversalResult:
        if str(payment_reference).strip().startswith("0000"):
            return ReversalResult(False, message="Mock failure: reversal rejected by provider.")
        logger.info("Mock reversal of %s %s via %s", amount, payment_reference, payment_method)
        return ReversalResult(True, external_reference=self._ref())
