"""
Notification collaborator.

Called after every committed status change. In production this would hand
the message to an SMS/e-mail provider; ``LoggingNotifier`` just logs it.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from booking_engine.schemas.booking_schema import Booking
from booking_engine.schemas.catalog_schema import Employee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingNotification:
    event: str
    booking: Booking
    mobile: Optional[str] = None
    email: Optional[str] = None
    employee: Optional[Employee] = None


class Notifier(Protocol):
    def notify(self, notification: BookingNotification) -> None: ...


class LoggingNotifier:
    def notify(self, notification: BookingNotification) -> None:
        logger.info(
            "Notify %s/%s: %s for booking #%d (%s)",
            notification.mobile or "-",
            notification.email or "-",
            notification.event,
            notification.booking.id,
            notification.booking.status.value,
        )
