"""
Tax jurisdiction selection and tax line computation.

Addresses whose free-text line mentions the home state pay the split
CGST + SGST pair; everything else pays IGST.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from booking_engine.config import settings
from booking_engine.schemas.booking_schema import BookingTax
from booking_engine.schemas.catalog_schema import TaxName, Taxation
from booking_engine.utils import to_money

logger = logging.getLogger(__name__)

HOME_STATE_TAXES = frozenset({TaxName.CGST, TaxName.SGST})
OUT_OF_STATE_TAXES = frozenset({TaxName.IGST})


def is_home_state(address_line: Optional[str], home_state: Optional[str] = None) -> bool:
    """Case-insensitive substring match of the home state name on the address line."""
    state = (home_state or settings.pricing.home_state_name).lower()
    return bool(address_line) and state in address_line.lower()


def select_tax_rows(
    rows: Iterable[Taxation], address_line: Optional[str], home_state: Optional[str] = None
) -> list[Taxation]:
    wanted = HOME_STATE_TAXES if is_home_state(address_line, home_state) else OUT_OF_STATE_TAXES
    return [row for row in rows if row.tax_name in wanted]


def compute_tax(net_total: Decimal, rows: Iterable[Taxation]) -> tuple[Decimal, list[BookingTax]]:
    """
    Compute one tax line per row.

    Each line is ``net_total * rate / 100`` rounded to money precision;
    the returned total is the exact sum of the rounded lines.
    """
    lines = [
        BookingTax(
            tax_name=row.tax_name,
            tax_percent=row.tax_percent,
            amount=to_money(net_total * row.tax_percent / Decimal(100)),
        )
        for row in rows
    ]
    total = to_money(sum((line.amount for line in lines), Decimal("0")))
    logger.debug("Tax on %s: %s across %d line(s)", net_total, total, len(lines))
    return total, lines
