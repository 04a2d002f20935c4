"""
Payment ledger writes.

A booking carries at most one ``credited`` transaction. ``credit()`` is
idempotent: a second call returns the existing entry. The store's
``add_transaction`` guard turns a racing duplicate into the same no-op.
"""

import logging
import uuid
from decimal import Decimal
from typing import Callable, Optional

from booking_engine.config import settings
from booking_engine.errors import DuplicateLedgerEntry
from booking_engine.schemas.booking_schema import (
    Booking,
    PaymentMode,
    PaymentType,
    Transaction,
)
from booking_engine.storage.repository import BookingRepository
from booking_engine.utils import Clock, generate_unique_id, utc_now

logger = logging.getLogger(__name__)

PENDING = "Pending"
SUCCESS = "Success"


class Ledger:
    def __init__(
        self,
        repository: BookingRepository,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._repo = repository
        self._clock = clock
        self._id_factory = id_factory

    def new_transaction_id(self) -> str:
        return generate_unique_id(self._repo.transaction_id_exists, factory=self._id_factory)

    def credit(
        self,
        booking: Booking,
        provider: str,
        mode: PaymentMode,
        amount: Optional[Decimal] = None,
        gateway_transaction_id: Optional[str] = None,
        transaction_status: str = SUCCESS,
    ) -> Transaction:
        """Record the booking's credit, or return the one already recorded."""
        existing = self._repo.find_transaction(booking.id, PaymentType.CREDITED)
        if existing is not None:
            logger.info("Booking #%d already credited by %s; skipping", booking.id, existing.id)
            return existing

        now = self._clock()
        transaction = Transaction(
            id=self.new_transaction_id(),
            booking_id=booking.id,
            type=PaymentType.CREDITED,
            amount=booking.total if amount is None else amount,
            provider=provider,
            mode=mode,
            gateway_transaction_id=gateway_transaction_id,
            transaction_status=transaction_status,
            created_at=now,
            updated_at=now,
        )
        try:
            self._repo.add_transaction(transaction)
        except DuplicateLedgerEntry:
            logger.info("Concurrent credit detected for booking #%d; keeping the first", booking.id)
            return self._repo.find_transaction(booking.id, PaymentType.CREDITED)

        logger.info(
            "Credited %s to booking #%d via %s (%s)",
            transaction.amount, booking.id, provider, transaction.id,
        )
        return transaction

    def credit_offline(self, booking: Booking) -> Transaction:
        provider = settings.ledger.offline_provider
        return self.credit(booking, provider=provider, mode=PaymentMode.OFFLINE)

    def open_refund(
        self,
        booking: Booking,
        refund_id: str,
        amount: Decimal,
        provider: str,
        gateway_transaction_id: Optional[str] = None,
    ) -> Transaction:
        """Record a refund the gateway accepted; it stays ``Pending`` until resolved."""
        now = self._clock()
        transaction = Transaction(
            id=refund_id,
            booking_id=booking.id,
            type=PaymentType.REFUNDED,
            amount=amount,
            provider=provider,
            mode=PaymentMode.ONLINE,
            gateway_transaction_id=gateway_transaction_id,
            transaction_status=PENDING,
            created_at=now,
            updated_at=now,
        )
        self._repo.add_transaction(transaction)
        logger.info("Refund %s of %s opened for booking #%d", refund_id, amount, booking.id)
        return transaction

    def pending_refund(self, booking_id: int) -> Optional[Transaction]:
        return self._repo.find_transaction(booking_id, PaymentType.REFUNDED, PENDING)

    def set_status(self, transaction: Transaction, status: str) -> Transaction:
        transaction.transaction_status = status
        transaction.updated_at = self._clock()
        self._repo.update_transaction(transaction)
        logger.info("Transaction %s is now %s", transaction.id, status)
        return transaction
