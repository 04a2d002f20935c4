"""
Status adjacency table for the booking lifecycle.

Every legal status change is listed in ``BookingStateMachine.TRANSITIONS``;
nothing else in the engine decides whether a jump is allowed. Some edges
carry a guard on the booking, e.g. a direct cancel is only allowed for
offline payments because online-paid bookings must go through a refund.
A refund that completes for a customer cancel moves on to ``cancelled``;
a refund after a rejection stops at ``refund_completed``.

Usage:
    sm = BookingStateMachine()
    sm.validate(booking, BookingStatus.APPROVED)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from booking_engine.errors import InvalidStatusTransition
from booking_engine.schemas.booking_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)

S = BookingStatus


def _paid_online(booking: Booking) -> bool:
    return booking.is_online_payment


def _paid_offline(booking: Booking) -> bool:
    return not booking.is_online_payment


def _cancel_requested(booking: Booking) -> bool:
    return booking.cancellation_requested


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    guard: Optional[Callable[[Booking], bool]] = None


TERMINAL_STATUSES = frozenset({
    S.INVOICED,
    S.CANCELLED,
    S.REFUND_COMPLETED,
    S.REFUND_FAILED,
    S.DELETED_BY_USER,
})


class BookingStateMachine:
    """Validates status changes against the adjacency table."""

    TRANSITIONS: list[Transition] = [
        # --- Draft ---
        Transition(S.INITIATED, S.BOOKED),
        Transition(S.INITIATED, S.PAYMENT_PENDING),
        Transition(S.INITIATED, S.CANCELLED),
        Transition(S.INITIATED, S.DELETED_BY_USER),

        # --- Online payment ---
        Transition(S.PAYMENT_PENDING, S.PAYMENT_COMPLETED),
        Transition(S.PAYMENT_PENDING, S.PAYMENT_FAILED),
        Transition(S.PAYMENT_PENDING, S.CANCELLED),
        Transition(S.PAYMENT_FAILED, S.PAYMENT_PENDING),
        Transition(S.PAYMENT_FAILED, S.CANCELLED),
        Transition(S.PAYMENT_FAILED, S.DELETED_BY_USER),
        Transition(S.PAYMENT_COMPLETED, S.BOOKED),
        Transition(S.PAYMENT_COMPLETED, S.APPROVED),
        Transition(S.PAYMENT_COMPLETED, S.REFUND_PENDING),

        # --- Confirmed ---
        Transition(S.BOOKED, S.APPROVED),
        Transition(S.BOOKED, S.CANCELLED, _paid_offline),
        Transition(S.BOOKED, S.REJECTED),
        Transition(S.BOOKED, S.REFUND_PENDING, _paid_online),
        Transition(S.APPROVED, S.COMPLETED),
        Transition(S.APPROVED, S.CANCELLED, _paid_offline),
        Transition(S.APPROVED, S.REJECTED),
        Transition(S.APPROVED, S.REFUND_PENDING, _paid_online),

        # --- Rejection and refund ---
        Transition(S.REJECTED, S.REFUND_PENDING, _paid_online),
        Transition(S.REFUND_PENDING, S.REFUND_COMPLETED),
        Transition(S.REFUND_PENDING, S.REFUND_FAILED),
        Transition(S.REFUND_COMPLETED, S.CANCELLED, _cancel_requested),

        # --- Completion and warranty ---
        Transition(S.COMPLETED, S.INVOICED),
        Transition(S.COMPLETED, S.WARRANTY_REQUESTED),
        Transition(S.WARRANTY_REQUESTED, S.WARRANTY_REQUEST_ACCEPTED),
        Transition(S.WARRANTY_REQUESTED, S.WARRANTY_REQUEST_REJECTED),
        Transition(S.WARRANTY_REQUEST_ACCEPTED, S.COMPLETED),
        Transition(S.WARRANTY_REQUEST_REJECTED, S.COMPLETED),
    ]

    def allowed_next(self, booking: Booking) -> list[BookingStatus]:
        """Statuses reachable from the booking's current status, guards applied."""
        return [
            t.to_status for t in self.TRANSITIONS
            if t.from_status == booking.status and (t.guard is None or t.guard(booking))
        ]

    def can_transition(self, booking: Booking, target: BookingStatus) -> bool:
        return target in self.allowed_next(booking)

    def validate(self, booking: Booking, target: BookingStatus) -> None:
        """
        Raises:
            InvalidStatusTransition: If ``target`` is not reachable from the current status.
        """
        if not self.can_transition(booking, target):
            logger.debug(
                "Rejected transition %s -> %s for booking #%d (allowed: %s)",
                booking.status.value, target.value, booking.id,
                [s.value for s in self.allowed_next(booking)],
            )
            raise InvalidStatusTransition(booking.status.value, target.value)

    @staticmethod
    def is_terminal(status: BookingStatus) -> bool:
        return status in TERMINAL_STATUSES
