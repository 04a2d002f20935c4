"""Shared utilities used across the booking engine."""

import logging
import re
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from booking_engine.config import settings
from booking_engine.errors import IdGenerationExhausted

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock. Every component accepts an injected clock instead."""
    return datetime.now(timezone.utc)


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Round a value to the configured number of currency decimal places."""
    exponent = Decimal(1).scaleb(-settings.pricing.money_places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("98400 12345")
        '9840012345'
        >>> normalize_phone("+91 (984) 001-2345")
        '+919840012345'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def generate_unique_id(
    exists: Callable[[str], bool],
    prefix: str = "",
    max_attempts: Optional[int] = None,
    factory: Callable[[], str] = lambda: uuid.uuid4().hex,
) -> str:
    """Generate an id not yet taken according to ``exists``.

    Collisions are retried up to ``max_attempts`` times.

    Raises:
        IdGenerationExhausted: If every attempt collided.
    """
    attempts = max_attempts or settings.ledger.id_max_attempts
    for attempt in range(1, attempts + 1):
        candidate = f"{prefix}{factory()}"
        if not exists(candidate):
            return candidate
        logger.warning("Id collision on attempt %d/%d: %s", attempt, attempts, candidate)
    raise IdGenerationExhausted(
        f"Could not generate a unique id after {attempts} attempts"
    )
