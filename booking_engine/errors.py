"""
Domain errors raised by the booking engine.

Every error carries a machine-checkable ``kind`` and a human message.
They propagate to the boundary layer uninterpreted; the only ones the
core itself absorbs are DuplicateLedgerEntry (a no-op) and the
"refund still pending" gateway outcome, which is not an error at all.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_STATUS_TRANSITION = "invalid_status_transition"
    INFEASIBLE_LOCATION = "infeasible_location"
    SLOT_UNAVAILABLE = "slot_unavailable"
    INVALID_OFFER_OR_COUPON = "invalid_offer_or_coupon"
    WARRANTY_EXPIRED = "warranty_expired"
    UNAUTHORIZED_BOOKING_ACCESS = "unauthorized_booking_access"
    DUPLICATE_LEDGER_ENTRY = "duplicate_ledger_entry"
    NOT_FOUND = "not_found"
    INVALID_SERVICE = "invalid_service"
    INVALID_EMPLOYEE = "invalid_employee"
    ID_GENERATION_EXHAUSTED = "id_generation_exhausted"
    GATEWAY_ERROR = "gateway_error"


class BookingError(Exception):
    """Base class for all domain errors."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class InvalidStatusTransition(BookingError):
    kind = ErrorKind.INVALID_STATUS_TRANSITION

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Booking with {current} can't be updated to {target}")
        self.current = current
        self.target = target


class InfeasibleLocation(BookingError):
    kind = ErrorKind.INFEASIBLE_LOCATION


class SlotUnavailable(BookingError):
    kind = ErrorKind.SLOT_UNAVAILABLE


class InvalidOfferOrCoupon(BookingError):
    kind = ErrorKind.INVALID_OFFER_OR_COUPON


class WarrantyExpired(BookingError):
    kind = ErrorKind.WARRANTY_EXPIRED


class UnauthorizedBookingAccess(BookingError):
    kind = ErrorKind.UNAUTHORIZED_BOOKING_ACCESS


class DuplicateLedgerEntry(BookingError):
    kind = ErrorKind.DUPLICATE_LEDGER_ENTRY


class NotFound(BookingError):
    kind = ErrorKind.NOT_FOUND


class InvalidService(BookingError):
    kind = ErrorKind.INVALID_SERVICE


class InvalidEmployee(BookingError):
    kind = ErrorKind.INVALID_EMPLOYEE


class IdGenerationExhausted(BookingError):
    kind = ErrorKind.ID_GENERATION_EXHAUSTED


class GatewayError(BookingError):
    """A payment gateway call failed. The booking is left in its ``*_pending`` state."""

    kind = ErrorKind.GATEWAY_ERROR
    retryable = True
