"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from booking_engine.integrations.payments import MockPaymentGateway
from booking_engine.lifecycle.booking_service import BookingService
from booking_engine.lifecycle.ledger import Ledger
from booking_engine.location.feasibility import FeasibilityResolver
from booking_engine.location.geo import GeoMatcher
from booking_engine.pricing.coupons import CouponService
from booking_engine.scheduling.slot_service import SlotService
from booking_engine.schemas.booking_schema import BookingCreateParams
from booking_engine.schemas.catalog_schema import (
    Address,
    Category,
    CategoryLocation,
    Coupon,
    Customer,
    Employee,
    Geolocation,
    Location,
    Offer,
    OfferType,
    Service,
    ServiceableRegion,
    Subcategory,
    SubcategoryLocation,
    Task,
    TaskLocation,
    TaxName,
    Taxation,
    WarrantyUnit,
)
from booking_engine.schemas.slot_schema import Slot
from booking_engine.storage.memory import InMemoryStore

NOW = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

# catalog ids
CLEANING, AC_REPAIR = 1, 2
CLEANING_TASK, INSPECTION_TASK, AC_TASK = 1, 2, 3
CENTRAL = 1

# offers
TEN_PCT_CAP_80, FLAT_50_BASE, FLAT_50_COUPON, EXPIRED_OFFER, MIN_ORDER_OFFER = 1, 2, 3, 4, 5

# customers, addresses, employees
ASHA, RAVI = 1, 2
CHENNAI_HOME, BENGALURU_HOME, DELHI_HOME, RAVI_HOME = 1, 2, 3, 4
KUMAR, BALA = 1, 2

SOUTH_INDIA = ServiceableRegion(
    name="South India",
    vertices=[(8.0, 74.0), (8.0, 81.0), (16.0, 81.0), (16.0, 74.0)],
)


class FixedClock:
    """Injectable clock that only moves when a test moves it."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_slot(store: InMemoryStore, service_id: int, day: date, hour: int = 9, **kwargs) -> Slot:
    """Persist a one-hour slot and return it."""
    slot = Slot(
        id=store.next_id("slots"),
        service_id=service_id,
        date=day,
        start_time=datetime.combine(day, datetime.min.time()).replace(hour=hour),
        end_time=datetime.combine(day, datetime.min.time()).replace(hour=hour + 1),
        **kwargs,
    )
    store.save_slots([slot])
    return slot


def make_coupon(store: InMemoryStore, offer_id: int, code: str, active: bool = True) -> Coupon:
    coupon = Coupon(id=store.next_id("coupons"), code=code, offer_id=offer_id, active=active)
    store.save_coupon(coupon)
    return coupon


def seed_catalog(store: InMemoryStore) -> InMemoryStore:
    """Two services around one Chennai location, tax rows and a few customers."""
    store.save_category(Category(id=1, name="Home Cleaning"))
    store.save_subcategory(Subcategory(id=1, category_id=1, name="Deep Cleaning"))

    store.save_service(Service(
        id=CLEANING,
        name="Full Home Deep Cleaning",
        category_id=1,
        subcategory_id=1,
        book_before_in_days=1,
        active_from=TODAY,
        inspection_task_id=INSPECTION_TASK,
        warranty_period=7,
        warranty_period_unit=WarrantyUnit.DAY,
    ))
    store.save_service(Service(
        id=AC_REPAIR,
        name="AC Repair",
        category_id=1,
        subcategory_id=1,
        is_available_everywhere=True,
        active_from=TODAY,
        base_offer_id=FLAT_50_BASE,
    ))
    store.save_task(Task(id=CLEANING_TASK, service_id=CLEANING, name="3 BHK", base_cost=Decimal("1000")))
    store.save_task(Task(id=INSPECTION_TASK, service_id=CLEANING, name="Inspection", base_cost=Decimal("199")))
    store.save_task(Task(id=AC_TASK, service_id=AC_REPAIR, name="Split AC", base_cost=Decimal("500")))

    store.save_location(Location(
        id=CENTRAL, name="Chennai Central", radius_km=10, latitude=13.0827, longitude=80.2707
    ))
    store.save_category_location(CategoryLocation(category_id=1, location_id=CENTRAL))
    store.save_subcategory_location(SubcategoryLocation(subcategory_id=1, location_id=CENTRAL))
    store.save_task_location(TaskLocation(
        task_id=CLEANING_TASK, location_id=CENTRAL, cost=Decimal("1000"), offer_id=TEN_PCT_CAP_80
    ))
    store.save_task_location(TaskLocation(
        task_id=AC_TASK, location_id=CENTRAL, cost=Decimal("450")
    ))

    for offer in (
        Offer(id=TEN_PCT_CAP_80, type=OfferType.PERCENTAGE, discount=Decimal("10"),
              maximum_discount=Decimal("80")),
        Offer(id=FLAT_50_BASE, type=OfferType.FLAT, discount=Decimal("50")),
        Offer(id=FLAT_50_COUPON, type=OfferType.FLAT, discount=Decimal("50")),
        Offer(id=EXPIRED_OFFER, type=OfferType.FLAT, discount=Decimal("100"),
              valid_till=NOW - timedelta(days=30)),
        Offer(id=MIN_ORDER_OFFER, type=OfferType.FLAT, discount=Decimal("100"),
              minimum_order=Decimal("5000")),
    ):
        store.save_offer(offer, NOW)

    store.save_taxation(Taxation(tax_name=TaxName.CGST, tax_percent=Decimal("9")))
    store.save_taxation(Taxation(tax_name=TaxName.SGST, tax_percent=Decimal("9")))
    store.save_taxation(Taxation(tax_name=TaxName.IGST, tax_percent=Decimal("18")))

    store.save_customer(Customer(id=ASHA, name="Asha", mobile="+91 98400 12345", email="asha@example.com"))
    store.save_customer(Customer(id=RAVI, name="Ravi", mobile="98400 54321"))

    addresses = {
        CHENNAI_HOME: (ASHA, 13.0850, 80.2750, "12 Anna Salai, Chennai, Tamil Nadu"),
        BENGALURU_HOME: (ASHA, 12.9716, 77.5946, "MG Road, Bengaluru, Karnataka"),
        DELHI_HOME: (ASHA, 28.6139, 77.2090, "Connaught Place, New Delhi"),
        RAVI_HOME: (RAVI, 13.0800, 80.2700, "Mount Road, Chennai, Tamil Nadu"),
    }
    for address_id, (user_id, lat, lng, line) in addresses.items():
        store.save_address(Address(
            id=address_id,
            user_id=user_id,
            address_type="home",
            geolocation=Geolocation(latitude=lat, longitude=lng, address_line=line),
        ))

    store.save_employee(Employee(id=KUMAR, name="Kumar"))
    store.save_employee(Employee(id=BALA, name="Bala", blocked=True))
    return store


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return seed_catalog(InMemoryStore())


@pytest.fixture
def geo():
    return GeoMatcher(regions=[SOUTH_INDIA])


@pytest.fixture
def resolver(store, geo):
    return FeasibilityResolver(store, geo)


@pytest.fixture
def gateway():
    return MockPaymentGateway()


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    def notify(self, notification) -> None:
        if self.fail:
            raise RuntimeError("SMS provider down")
        self.sent.append(notification)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ledger(store, clock):
    return Ledger(store, clock=clock)


@pytest.fixture
def coupon_service(store, clock):
    return CouponService(store, clock=clock)


@pytest.fixture
def slot_service(store, clock):
    return SlotService(store, clock=clock)


@pytest.fixture
def booking_service(store, resolver, ledger, coupon_service, gateway, notifier, clock):
    return BookingService(
        store,
        resolver,
        coupons=coupon_service,
        ledger=ledger,
        gateway=gateway,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def open_slot(store):
    """Cleaning slot two days out, past the one-day advance window."""
    return make_slot(store, CLEANING, TODAY + timedelta(days=2))


def booking_params(
    slot_id: int,
    customer_id: int = ASHA,
    address_id: int = CHENNAI_HOME,
    service_id: int = CLEANING,
    task_id: int = CLEANING_TASK,
    coupon_id: Optional[int] = None,
    **kwargs,
) -> BookingCreateParams:
    return BookingCreateParams(
        customer_id=customer_id,
        address_id=address_id,
        service_id=service_id,
        task_id=task_id,
        slot_id=slot_id,
        coupon_id=coupon_id,
        **kwargs,
    )
