"""Booking aggregate records and the typed request structs that mutate them."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from booking_engine.schemas.catalog_schema import Geolocation, TaxName


class BookingStatus(str, Enum):
    """All possible states in a booking lifecycle."""
    INITIATED = "initiated"
    APPROVED = "approved"
    BOOKED = "booked"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    REFUND_PENDING = "refund_pending"
    REFUND_COMPLETED = "refund_completed"
    REFUND_FAILED = "refund_failed"
    DELETED_BY_USER = "deleted_by_user"
    WARRANTY_REQUESTED = "warranty_requested"
    WARRANTY_REQUEST_ACCEPTED = "warranty_request_accepted"
    WARRANTY_REQUEST_REJECTED = "warranty_request_rejected"


class BookingAction(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    WARRANTY_REQUESTED = "warranty_requested"


class PaymentType(str, Enum):
    CREDITED = "credited"
    REFUNDED = "refunded"


class PaymentMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class WarrantyStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingAddress(BaseModel):
    """Snapshot of a customer address taken when the booking was priced."""

    id: int
    user_id: int
    address_type: str = ""
    landmark: Optional[str] = None
    geolocation: Geolocation


class BookingTax(BaseModel):
    booking_id: Optional[int] = None
    tax_name: TaxName
    tax_percent: Decimal
    amount: Decimal


class BookingLog(BaseModel):
    """Append-only audit entry."""

    id: int
    booking_id: int
    action_by_id: int
    action: BookingAction
    message: str
    status: Optional[BookingStatus] = None
    employee_id: Optional[int] = None
    created_at: datetime


class Transaction(BaseModel):
    """Payment ledger entry."""

    id: str
    booking_id: int
    type: PaymentType
    amount: Decimal
    provider: str
    mode: PaymentMode
    gateway_transaction_id: Optional[str] = None
    transaction_status: str
    created_at: datetime
    updated_at: datetime


class Warranty(BaseModel):
    id: int
    booking_id: int
    reason: str
    description: Optional[str] = None
    attachment_ids: list[int] = Field(default_factory=list)
    status: WarrantyStatus = WarrantyStatus.PENDING
    created_at: datetime


class Booking(BaseModel):
    """Aggregate root. Mutated only through BookingService operations.

    ``cancellation_requested`` marks an online-paid booking the customer
    cancelled; once its refund completes the booking lands on ``cancelled``.
    """

    id: int
    customer_id: int
    address_id: int
    service_id: int
    task_id: int
    slot_id: int
    category_id: int
    subcategory_id: int
    mapped_location_id: Optional[int] = None
    applied_offer_id: Optional[int] = None
    applied_coupon_id: Optional[int] = None
    sub_total: Decimal
    offer_discount: Decimal = Decimal("0")
    coupon_discount: Decimal = Decimal("0")
    total_without_tax: Decimal
    total_tax: Decimal = Decimal("0")
    total: Decimal
    is_online_payment: bool = False
    status: BookingStatus = BookingStatus.INITIATED
    employee_id: Optional[int] = None
    warranty_employee_id: Optional[int] = None
    warranty_id: Optional[int] = None
    cancellation_requested: bool = False
    deleted: bool = False
    created_at: datetime
    updated_at: datetime


class Quotation(BaseModel):
    """Price breakdown computed for a booking, persisted or not."""

    sub_total: Decimal
    applied_offer_id: Optional[int] = None
    offer_discount: Decimal = Decimal("0")
    applied_coupon_id: Optional[int] = None
    coupon_discount: Decimal = Decimal("0")
    total_without_tax: Decimal
    total_tax: Decimal = Decimal("0")
    total: Decimal
    taxes: list[BookingTax] = Field(default_factory=list)
    mapped_location_id: Optional[int] = None
    available_everywhere: bool = False


class BookingCreateParams(BaseModel):
    """Booking creation request.

    ``coupon_id``: absent or None means no coupon.
    ``status``: absent or None means a customer draft (``initiated``); an admin
    booking on behalf of a customer passes a confirmed status such as ``booked``.
    ``is_online_payment``: defaults to False (pay on completion).
    """

    customer_id: int
    address_id: int
    service_id: int
    task_id: int
    slot_id: int
    coupon_id: Optional[int] = None
    is_online_payment: bool = False
    status: Optional[BookingStatus] = None


class BookingStatusUpdate(BaseModel):
    """Admin status update.

    ``is_online_payment``: when the field is absent the flag is left untouched;
    an explicit ``None`` is treated the same as absent; ``False`` clears it.
    """

    status: BookingStatus
    is_online_payment: Optional[bool] = None

    def online_payment_change(self) -> Optional[bool]:
        if "is_online_payment" not in self.model_fields_set:
            return None
        return self.is_online_payment


class WarrantyRequestParams(BaseModel):
    """Warranty claim. ``description`` may be absent; ``attachment_ids`` defaults to none."""

    reason: str
    description: Optional[str] = None
    attachment_ids: list[int] = Field(default_factory=list)
