from booking_engine.pricing.coupons import CouponService
from booking_engine.pricing.engine import PricingEngine
from booking_engine.pricing.offers import apply_coupon, apply_offer
from booking_engine.pricing.tax import compute_tax, is_home_state, select_tax_rows

__all__ = [
    "CouponService",
    "PricingEngine",
    "apply_coupon",
    "apply_offer",
    "compute_tax",
    "is_home_state",
    "select_tax_rows",
]
