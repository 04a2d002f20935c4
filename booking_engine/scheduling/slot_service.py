"""
Slot administration and customer-facing slot listing.

Editing a service's booking window retires its existing future slots
before regenerating: slots already referenced by a booking are kept but
flagged non-bookable, the rest are deleted.
"""

import logging
from datetime import date, timedelta

from booking_engine.errors import NotFound
from booking_engine.scheduling.slot_generator import ServiceWindow, generate
from booking_engine.schemas.catalog_schema import Service
from booking_engine.schemas.slot_schema import (
    ActiveWindowParams,
    Slot,
    SlotStatusParams,
    SlotWindowParams,
)
from booking_engine.storage.repository import BookingRepository
from booking_engine.utils import Clock, utc_now

logger = logging.getLogger(__name__)


def is_bookable(slot: Slot, service: Service, today: date) -> bool:
    """Visible to customers: active, not retired and past the advance-booking window."""
    earliest = today + timedelta(days=service.book_before_in_days)
    return slot.active and not slot.is_non_bookable and slot.date >= earliest


class SlotService:
    def __init__(self, repository: BookingRepository, clock: Clock = utc_now) -> None:
        self._repo = repository
        self._clock = clock

    def _service(self, service_id: int) -> Service:
        service = self._repo.get_service(service_id)
        if service is None:
            raise NotFound(f"Service #{service_id} not found")
        return service

    def define_window(self, service_id: int, params: SlotWindowParams) -> list[Slot]:
        """Store the daily window on the service and regenerate its slots."""
        with self._repo.atomic():
            service = self._service(service_id)
            service.slot_duration = params.duration_minutes
            service.slot_start_at = params.start_time
            service.slot_end_at = params.end_time
            self._repo.save_service(service)
            return self._regenerate(service)

    def update_active_window(self, service_id: int, params: ActiveWindowParams) -> list[Slot]:
        """
        Edit ``active_from``/``active_till`` and regenerate slots.

        Services without a daily window yet only get their dates updated.

        Raises:
            NotFound: Unknown service.
            ValueError: ``active_till`` earlier than ``active_from``.
        """
        with self._repo.atomic():
            service = self._service(service_id)
            if params.active_from is not None:
                service.active_from = params.active_from
            if params.clears_active_till():
                service.active_till = None
            elif params.active_till is not None:
                service.active_till = params.active_till
            if service.active_till is not None and service.active_till < service.active_from:
                raise ValueError(
                    f"active_till {service.active_till} is before active_from {service.active_from}"
                )
            self._repo.save_service(service)

            if service.slot_duration is None or service.slot_start_at is None or service.slot_end_at is None:
                logger.info("Service #%d has no slot window; skipping regeneration", service_id)
                return []
            return self._regenerate(service)

    def change_status(self, service_id: int, params: SlotStatusParams) -> list[Slot]:
        """Toggle ``active`` on one slot or every slot of a date. ``is_non_bookable`` is untouched."""
        with self._repo.atomic():
            self._service(service_id)
            slots = [
                slot for slot in self._repo.list_slots(service_id, on_date=params.date)
                if params.slot_id is None or slot.id == params.slot_id
            ]
            if params.slot_id is not None and not slots:
                raise NotFound(f"Slot #{params.slot_id} not found on {params.date}")
            for slot in slots:
                slot.active = params.active
            self._repo.save_slots(slots)

        logger.info(
            "Set active=%s on %d slot(s) of service #%d for %s",
            params.active, len(slots), service_id, params.date,
        )
        return slots

    def list_bookable(self, service_id: int) -> list[Slot]:
        service = self._service(service_id)
        today = self._clock().date()
        return [slot for slot in self._repo.list_slots(service_id) if is_bookable(slot, service, today)]

    def _regenerate(self, service: Service) -> list[Slot]:
        today = self._clock().date()
        self._retire_future_slots(service.id, today)
        window = ServiceWindow(
            service_id=service.id,
            active_from=service.active_from,
            active_till=service.active_till,
        )
        slots = generate(
            window,
            service.slot_start_at,
            service.slot_end_at,
            service.slot_duration,
            today,
            next_id=lambda: self._repo.next_id("slots"),
        )
        self._repo.save_slots(slots)
        logger.info("Generated %d slot(s) for service #%d", len(slots), service.id)
        return slots

    def _retire_future_slots(self, service_id: int, today: date) -> None:
        retired = deleted = 0
        for slot in self._repo.list_slots(service_id, on_or_after=today):
            if self._repo.count_slot_bookings(slot.id):
                if not slot.is_non_bookable:
                    slot.is_non_bookable = True
                    self._repo.save_slots([slot])
                retired += 1
            else:
                self._repo.delete_slot(slot.id)
                deleted += 1
        logger.debug(
            "Service #%d: %d slot(s) marked non-bookable, %d deleted", service_id, retired, deleted
        )
