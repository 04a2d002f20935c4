"""
Coupon issuance and applicability checks.

In production coupons are created from the admin console; here the
CouponService issues them against the injected repository.
"""

import logging
import uuid
from decimal import Decimal
from typing import Callable, Optional

from booking_engine.errors import InvalidOfferOrCoupon, NotFound
from booking_engine.pricing.offers import is_offer_applicable
from booking_engine.schemas.catalog_schema import Coupon, Offer
from booking_engine.storage.repository import BookingRepository
from booking_engine.utils import Clock, generate_unique_id, utc_now

logger = logging.getLogger(__name__)


def _coupon_code() -> str:
    return uuid.uuid4().hex[:8].upper()


class CouponService:
    def __init__(
        self,
        repository: BookingRepository,
        clock: Clock = utc_now,
        code_factory: Callable[[], str] = _coupon_code,
    ) -> None:
        self._repo = repository
        self._clock = clock
        self._code_factory = code_factory

    def issue_coupon(self, offer: Offer, active: bool = True, prefix: str = "") -> Coupon:
        """Persist ``offer`` and wrap it in a coupon with a fresh unique code.

        Raises:
            IdGenerationExhausted: If no unused code was found within the retry budget.
        """
        with self._repo.atomic():
            offer = self._repo.save_offer(offer, self._clock())
            code = generate_unique_id(
                self._repo.coupon_code_exists, prefix=prefix, factory=self._code_factory
            )
            coupon = Coupon(
                id=self._repo.next_id("coupons"),
                code=code,
                offer_id=offer.id,
                active=active,
            )
            self._repo.save_coupon(coupon)

        logger.info("Issued coupon %s (#%d) for offer #%d", coupon.code, coupon.id, offer.id)
        return coupon

    def check_applicable(
        self,
        coupon_id: int,
        customer_id: int,
        post_offer_total: Decimal,
        exclude_booking_id: Optional[int] = None,
    ) -> tuple[Coupon, Offer]:
        """
        Validate that a coupon may be applied to a customer's order.

        Args:
            coupon_id: Coupon being applied.
            customer_id: Customer applying it.
            post_offer_total: Order total after the base offer; the coupon's
                minimum order is checked against this amount.
            exclude_booking_id: Booking the coupon is being applied to, so it
                does not count as a prior use.

        Returns:
            The coupon and its offer.

        Raises:
            NotFound: Unknown coupon.
            InvalidOfferOrCoupon: Inactive, expired, below minimum order or
                already used by this customer.
        """
        coupon = self._repo.get_coupon(coupon_id)
        if coupon is None:
            raise NotFound(f"Coupon #{coupon_id} not found")
        if not coupon.active:
            raise InvalidOfferOrCoupon(f"Coupon {coupon.code} is not active")

        offer = self._repo.get_offer(coupon.offer_id)
        if offer is None:
            raise NotFound(f"Offer #{coupon.offer_id} for coupon {coupon.code} not found")

        now = self._clock()
        if offer.expired_at(now):
            raise InvalidOfferOrCoupon(f"Coupon {coupon.code} has expired")
        if not is_offer_applicable(post_offer_total, offer, now):
            raise InvalidOfferOrCoupon(
                f"Coupon {coupon.code} needs a minimum order of {offer.minimum_order}"
            )
        if self._repo.customer_used_coupon(customer_id, coupon.id, exclude_booking_id):
            raise InvalidOfferOrCoupon(f"Coupon {coupon.code} has already been used")
        return coupon, offer
