"""
Offer and coupon discount math.

Pure functions over Decimal amounts. An offer is applied to the base cost;
a coupon is applied afterwards to the offer-adjusted total, never to the
raw base cost. The only time input is the caller-supplied ``now`` used for
the expiry check.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from booking_engine.schemas.catalog_schema import Coupon, Offer, OfferType
from booking_engine.utils import to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# (total, applied id or None, discount)
DiscountResult = tuple[Decimal, Optional[int], Decimal]


def is_offer_applicable(amount: Decimal, offer: Optional[Offer], now: datetime) -> bool:
    if offer is None:
        return False
    if offer.expired_at(now):
        return False
    if offer.minimum_order is not None and amount < offer.minimum_order:
        return False
    return True


def discount_for(amount: Decimal, offer: Offer) -> Decimal:
    """Discount ``offer`` grants on ``amount``, before any applicability check."""
    if offer.type == OfferType.PERCENTAGE:
        discount = amount * offer.discount / Decimal(100)
        if offer.maximum_discount is not None:
            discount = min(discount, offer.maximum_discount)
    else:
        discount = min(offer.discount, amount)
    return to_money(max(discount, ZERO))


def apply_discount(amount: Decimal, offer: Optional[Offer], now: datetime) -> DiscountResult:
    amount = to_money(amount)
    if not is_offer_applicable(amount, offer, now):
        return amount, None, to_money(ZERO)
    discount = discount_for(amount, offer)
    total = to_money(max(amount - discount, ZERO))
    logger.debug("Offer #%s on %s: -%s = %s", offer.id, amount, discount, total)
    return total, offer.id, discount


def apply_offer(base_cost: Decimal, offer: Optional[Offer], now: datetime) -> DiscountResult:
    """Apply an offer to the base cost.

    Returns ``(base_cost, None, 0)`` when the offer is missing, expired or
    the base cost is below its minimum order.
    """
    return apply_discount(base_cost, offer, now)


def apply_coupon(
    post_offer_total: Decimal,
    coupon: Optional[Coupon],
    coupon_offer: Optional[Offer],
    now: datetime,
) -> DiscountResult:
    """Apply a coupon on top of the offer-adjusted total.

    The applied id in the result is the coupon id, not its offer id.
    """
    if coupon is None or not coupon.active:
        return to_money(post_offer_total), None, to_money(ZERO)
    total, offer_id, discount = apply_discount(post_offer_total, coupon_offer, now)
    return total, coupon.id if offer_id is not None else None, discount
