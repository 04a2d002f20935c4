"""Warranty window arithmetic."""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from booking_engine.schemas.catalog_schema import WarrantyUnit

_UNIT_FIELDS = {
    WarrantyUnit.DAY: "days",
    WarrantyUnit.WEEK: "weeks",
    WarrantyUnit.MONTH: "months",
    WarrantyUnit.YEAR: "years",
}


def warranty_expires_at(start: datetime, period: int, unit: WarrantyUnit) -> datetime:
    """
    End of the warranty window opened at ``start``.

    Month and year periods are calendar-aware: one month from Jan 31 ends
    on the last day of February.

    Raises:
        ValueError: Unknown unit or negative period.
    """
    if period < 0:
        raise ValueError(f"Warranty period must not be negative, got {period}")
    try:
        field_name = _UNIT_FIELDS[WarrantyUnit(unit)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown warranty unit: {unit!r}") from None
    return start + relativedelta(**{field_name: period})


def is_within_warranty(start: datetime, period: int, unit: WarrantyUnit, now: datetime) -> bool:
    return now <= warranty_expires_at(start, period, unit)
