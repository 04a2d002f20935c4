"""
Slot generation.

A daily window is divided into consecutive fixed-duration buckets, and the
bucket set is replicated across every date of the service's active range.
Generation never filters by advance-booking rules; listing does that.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from booking_engine.config import settings
from booking_engine.schemas.slot_schema import Slot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceWindow:
    """Date range slots are generated for. ``active_till=None`` means rolling horizon."""
    service_id: int
    active_from: date
    active_till: Optional[date] = None


def divide_into_slots(
    daily_start: time, daily_end: time, duration_minutes: int
) -> list[tuple[time, time]]:
    """
    Split ``[daily_start, daily_end)`` into ``duration_minutes`` buckets.

    The last bucket is truncated to ``daily_end`` when the window is not an
    exact multiple of the duration. Seconds are dropped.

    Examples:
        >>> divide_into_slots(time(9), time(12, 30), 60)[-1]
        (datetime.time(12, 0), datetime.time(12, 30))
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

    anchor = date.min
    cursor = datetime.combine(anchor, daily_start.replace(second=0, microsecond=0))
    end = datetime.combine(anchor, daily_end.replace(second=0, microsecond=0))
    if end <= cursor:
        raise ValueError(f"Daily window {daily_start}-{daily_end} is empty")

    step = timedelta(minutes=duration_minutes)
    buckets: list[tuple[time, time]] = []
    while cursor < end:
        bucket_end = min(cursor + step, end)
        buckets.append((cursor.time(), bucket_end.time()))
        cursor = bucket_end
    return buckets


def window_dates(window: ServiceWindow, today: date, horizon_days: Optional[int] = None) -> list[date]:
    """Inclusive ``active_from..active_till``, or ``horizon_days`` days starting today."""
    if window.active_till is not None:
        first, last = window.active_from, window.active_till
    else:
        days = horizon_days or settings.scheduling.slot_horizon_days
        first, last = today, today + timedelta(days=days - 1)

    dates: list[date] = []
    current = first
    while current <= last:
        dates.append(current)
        current += timedelta(days=1)
    return dates


def generate(
    window: ServiceWindow,
    daily_start: time,
    daily_end: time,
    duration_minutes: int,
    today: date,
    next_id: Optional[Callable[[], int]] = None,
) -> list[Slot]:
    """Build the slot set for ``window``. Every slot starts active and bookable."""
    next_id = next_id or itertools.count(1).__next__
    buckets = divide_into_slots(daily_start, daily_end, duration_minutes)
    slots = [
        Slot(
            id=next_id(),
            service_id=window.service_id,
            date=day,
            start_time=datetime.combine(day, start),
            end_time=datetime.combine(day, end),
            active=True,
            is_non_bookable=False,
        )
        for day in window_dates(window, today)
        for start, end in buckets
    ]
    logger.debug(
        "Generated %d slot(s) for service #%d (%d per day)",
        len(slots), window.service_id, len(buckets),
    )
    return slots
