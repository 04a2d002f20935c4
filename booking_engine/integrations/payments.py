"""
Payment gateway collaborator.

The booking engine only talks to ``PaymentGateway``. Request signing,
callback verification and the HTTP wire format belong to the concrete
gateway client. In production this would wrap the payment provider's pay,
refund and status endpoints; ``MockPaymentGateway`` keeps scripted
outcomes in memory for tests and local runs.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol

from booking_engine.errors import GatewayError

logger = logging.getLogger(__name__)


class GatewayCode(str, Enum):
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_ERROR = "PAYMENT_ERROR"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"


_STATES = {
    GatewayCode.PAYMENT_SUCCESS: "COMPLETED",
    GatewayCode.PAYMENT_PENDING: "PENDING",
}


@dataclass(frozen=True)
class GatewayResult:
    """Outcome reported by the gateway for one merchant transaction."""
    code: GatewayCode
    merchant_transaction_id: str
    gateway_transaction_id: Optional[str] = None
    state: str = ""
    redirect_url: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.code == GatewayCode.PAYMENT_SUCCESS

    @property
    def is_pending(self) -> bool:
        return self.code == GatewayCode.PAYMENT_PENDING

    @property
    def is_gateway_error(self) -> bool:
        """The gateway could not process the call; the outcome is still unknown."""
        return self.code in (GatewayCode.INTERNAL_SERVER_ERROR, GatewayCode.TRANSACTION_NOT_FOUND)

    @property
    def transaction_status(self) -> str:
        """Ledger status string, e.g. ``"Completed"``."""
        return (self.state or self.code.value).replace("_", " ").title()


class PaymentGateway(Protocol):
    def initiate_payment(self, merchant_transaction_id: str, amount: Decimal) -> GatewayResult: ...

    def refund(
        self, merchant_transaction_id: str, original_transaction_id: str, amount: Decimal
    ) -> GatewayResult: ...

    def check_status(self, merchant_transaction_id: str) -> GatewayResult: ...


@dataclass
class MockPaymentGateway:
    """
    In-memory gateway with scripted outcomes.

    New payments and refunds start ``PAYMENT_PENDING``; tests move them with
    ``settle()``. ``fail_next`` makes the next call raise ``GatewayError``.
    """

    outcomes: dict[str, GatewayCode] = field(default_factory=dict)
    gateway_ids: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_next: bool = False

    def _call(self, operation: str, merchant_transaction_id: str) -> None:
        self.calls.append((operation, merchant_transaction_id))
        if self.fail_next:
            self.fail_next = False
            raise GatewayError(f"Gateway unavailable during {operation}")

    def _result(self, merchant_transaction_id: str) -> GatewayResult:
        code = self.outcomes.get(merchant_transaction_id)
        if code is None:
            return GatewayResult(GatewayCode.TRANSACTION_NOT_FOUND, merchant_transaction_id)
        return GatewayResult(
            code=code,
            merchant_transaction_id=merchant_transaction_id,
            gateway_transaction_id=self.gateway_ids.get(merchant_transaction_id),
            state=_STATES.get(code, "FAILED"),
        )

    def _open(self, merchant_transaction_id: str) -> None:
        self.outcomes.setdefault(merchant_transaction_id, GatewayCode.PAYMENT_PENDING)
        self.gateway_ids.setdefault(merchant_transaction_id, f"GW{uuid.uuid4().hex[:12].upper()}")

    def initiate_payment(self, merchant_transaction_id: str, amount: Decimal) -> GatewayResult:
        self._call("pay", merchant_transaction_id)
        self.outcomes[merchant_transaction_id] = GatewayCode.PAYMENT_PENDING
        self._open(merchant_transaction_id)
        logger.info("Mock payment %s opened for %s", merchant_transaction_id, amount)
        result = self._result(merchant_transaction_id)
        return GatewayResult(
            code=result.code,
            merchant_transaction_id=merchant_transaction_id,
            gateway_transaction_id=result.gateway_transaction_id,
            state=result.state,
            redirect_url=f"https://pay.example.invalid/{merchant_transaction_id}",
        )

    def refund(
        self, merchant_transaction_id: str, original_transaction_id: str, amount: Decimal
    ) -> GatewayResult:
        self._call("refund", merchant_transaction_id)
        self._open(merchant_transaction_id)
        logger.info(
            "Mock refund %s of %s against %s", merchant_transaction_id, amount, original_transaction_id
        )
        return self._result(merchant_transaction_id)

    def check_status(self, merchant_transaction_id: str) -> GatewayResult:
        self._call("status", merchant_transaction_id)
        return self._result(merchant_transaction_id)

    def settle(self, merchant_transaction_id: str, code: GatewayCode) -> None:
        self.outcomes[merchant_transaction_id] = code
