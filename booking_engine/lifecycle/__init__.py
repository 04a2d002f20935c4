from booking_engine.lifecycle.booking_service import BookingService, payment_reference
from booking_engine.lifecycle.ledger import Ledger
from booking_engine.lifecycle.state_machine import BookingStateMachine, Transition
from booking_engine.lifecycle.warranty import is_within_warranty, warranty_expires_at

__all__ = [
    "BookingService",
    "BookingStateMachine",
    "Ledger",
    "Transition",
    "is_within_warranty",
    "payment_reference",
    "warranty_expires_at",
]
