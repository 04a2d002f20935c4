"""Slot records and slot administration requests."""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, model_validator


class Slot(BaseModel):
    """A bookable time window on a specific date for a specific service."""

    id: int
    service_id: int
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    active: bool = True
    is_non_bookable: bool = False


class SlotWindowParams(BaseModel):
    """Daily window split into ``duration_minutes`` buckets."""

    duration_minutes: int
    start_time: dt.time
    end_time: dt.time

    @model_validator(mode="after")
    def _check_window(self) -> "SlotWindowParams":
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ActiveWindowParams(BaseModel):
    """Edit of a service's active window.

    ``active_from``: absent or None keeps the current value.
    ``active_till``: absent keeps the current value; an explicit None clears it,
    switching the service to the rolling slot horizon.
    """

    active_from: Optional[dt.date] = None
    active_till: Optional[dt.date] = None

    def clears_active_till(self) -> bool:
        return "active_till" in self.model_fields_set and self.active_till is None


class SlotStatusParams(BaseModel):
    """Toggle one slot (``slot_id`` given) or every slot on ``date`` (``slot_id`` absent)."""

    date: dt.date
    slot_id: Optional[int] = None
    active: bool
