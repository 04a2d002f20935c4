"""Composes offer, coupon and tax rules into a single quotation."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from booking_engine.pricing.offers import apply_coupon, apply_offer
from booking_engine.pricing.tax import compute_tax, select_tax_rows
from booking_engine.schemas.booking_schema import Quotation
from booking_engine.schemas.catalog_schema import Coupon, Offer, Taxation
from booking_engine.utils import to_money

logger = logging.getLogger(__name__)


class PricingEngine:
    """
    Deterministic price calculator.

    Holds no state: identical inputs (including ``now``) always produce an
    identical Quotation.
    """

    def quote(
        self,
        base_cost: Decimal,
        offer: Optional[Offer],
        tax_rows: Iterable[Taxation],
        address_line: Optional[str],
        now: datetime,
        coupon: Optional[Coupon] = None,
        coupon_offer: Optional[Offer] = None,
    ) -> Quotation:
        sub_total = to_money(base_cost)
        after_offer, offer_id, offer_discount = apply_offer(sub_total, offer, now)
        net_total, coupon_id, coupon_discount = apply_coupon(after_offer, coupon, coupon_offer, now)

        rows = select_tax_rows(tax_rows, address_line)
        total_tax, lines = compute_tax(net_total, rows)

        quotation = Quotation(
            sub_total=sub_total,
            applied_offer_id=offer_id,
            offer_discount=offer_discount,
            applied_coupon_id=coupon_id,
            coupon_discount=coupon_discount,
            total_without_tax=net_total,
            total_tax=total_tax,
            total=to_money(net_total + total_tax),
            taxes=lines,
        )
        logger.debug(
            "Quoted %s -> %s (offer -%s, coupon -%s, tax +%s)",
            sub_total, quotation.total, offer_discount, coupon_discount, total_tax,
        )
        return quotation
