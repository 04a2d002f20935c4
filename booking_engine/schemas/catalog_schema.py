"""Catalog, location, offer and tax records the booking engine reads."""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class OfferType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class WarrantyUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class TaxName(str, Enum):
    CGST = "cgst"
    SGST = "sgst"
    IGST = "igst"


class Offer(BaseModel):
    """Discount rule. ``is_expired`` is persisted and recomputed on every write."""

    id: int
    title: str = ""
    description: Optional[str] = None
    type: OfferType
    discount: Decimal
    minimum_order: Optional[Decimal] = None
    maximum_discount: Optional[Decimal] = None
    valid_till: Optional[datetime] = None
    is_expired: bool = False

    @field_validator("valid_till")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """A naive expiry is read as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def expired_at(self, now: datetime) -> bool:
        return self.valid_till is not None and self.valid_till < now

    def refresh_expiry(self, now: datetime) -> None:
        self.is_expired = self.expired_at(now)


class Coupon(BaseModel):
    """Customer-facing wrapper around an Offer."""

    id: int
    code: str
    offer_id: int
    active: bool = True


class Category(BaseModel):
    id: int
    name: str
    active: bool = True


class Subcategory(BaseModel):
    id: int
    category_id: int
    name: str
    active: bool = True


class Service(BaseModel):
    id: int
    name: str
    category_id: int
    subcategory_id: int
    active: bool = True
    book_before_in_days: int = 0
    is_available_everywhere: bool = False
    active_from: date
    active_till: Optional[date] = None
    base_offer_id: Optional[int] = None
    inspection_task_id: Optional[int] = None
    warranty_period: Optional[int] = None
    warranty_period_unit: Optional[WarrantyUnit] = None
    slot_duration: Optional[int] = None
    slot_start_at: Optional[time] = None
    slot_end_at: Optional[time] = None


class Task(BaseModel):
    id: int
    service_id: int
    name: str
    base_cost: Decimal
    active: bool = True


class Geolocation(BaseModel):
    latitude: float
    longitude: float
    address_line: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class Address(BaseModel):
    """An entry in a customer's address book."""

    id: int
    user_id: int
    address_type: str = ""
    landmark: Optional[str] = None
    geolocation: Geolocation


class Location(BaseModel):
    """Named service region: a center coordinate and a radius in kilometres."""

    id: int
    name: str
    radius_km: float
    latitude: float
    longitude: float
    active: bool = True
    deleted: bool = False


class TaskLocation(BaseModel):
    task_id: int
    location_id: int
    cost: Decimal
    offer_id: Optional[int] = None
    active: bool = True


class CategoryLocation(BaseModel):
    category_id: int
    location_id: int
    active: bool = True


class SubcategoryLocation(BaseModel):
    subcategory_id: int
    location_id: int
    active: bool = True


class Taxation(BaseModel):
    tax_name: TaxName
    tax_percent: Decimal


class Customer(BaseModel):
    id: int
    name: str
    mobile: Optional[str] = None
    email: Optional[str] = None


class Employee(BaseModel):
    id: int
    name: str
    mobile: Optional[str] = None
    email: Optional[str] = None
    blocked: bool = False
    deleted: bool = False


class ServiceableRegion(BaseModel):
    """Polygon boundary given as (latitude, longitude) vertices."""

    name: str = ""
    vertices: list[tuple[float, float]] = Field(default_factory=list)
