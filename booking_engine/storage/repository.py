"""
Persistence interface consumed by every booking engine component.

Components receive a repository instance instead of reaching for a
process-wide database handle. ``InMemoryStore`` is the reference
implementation; a relational adapter implements the same protocol with
row locks inside ``atomic()``.
"""

from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from booking_engine.schemas.booking_schema import (
    Booking,
    BookingAddress,
    BookingLog,
    BookingStatus,
    BookingTax,
    PaymentType,
    Transaction,
    Warranty,
)
from booking_engine.schemas.catalog_schema import (
    Address,
    Category,
    CategoryLocation,
    Coupon,
    Customer,
    Employee,
    Location,
    Offer,
    Service,
    Subcategory,
    SubcategoryLocation,
    Task,
    TaskLocation,
    Taxation,
)
from booking_engine.schemas.slot_schema import Slot


class BookingRepository(Protocol):
    """CRUD plus transactional multi-write for the booking aggregate."""

    def atomic(self) -> AbstractContextManager[None]:
        """Serialise a read-modify-write unit; roll every write back on error."""
        ...

    def next_id(self, table: str) -> int: ...

    # catalog reads
    def get_service(self, service_id: int) -> Optional[Service]: ...
    def save_service(self, service: Service) -> Service: ...
    def get_category(self, category_id: int) -> Optional[Category]: ...
    def get_subcategory(self, subcategory_id: int) -> Optional[Subcategory]: ...
    def get_task(self, task_id: int) -> Optional[Task]: ...
    def get_customer(self, customer_id: int) -> Optional[Customer]: ...
    def get_employee(self, employee_id: int) -> Optional[Employee]: ...
    def get_address(self, address_id: int) -> Optional[Address]: ...

    # location
    def list_locations(self, active_only: bool = True) -> list[Location]: ...
    def get_task_location(self, task_id: int, location_id: int) -> Optional[TaskLocation]: ...
    def get_category_location(self, category_id: int, location_id: int) -> Optional[CategoryLocation]: ...
    def get_subcategory_location(self, subcategory_id: int, location_id: int) -> Optional[SubcategoryLocation]: ...

    # pricing
    def get_offer(self, offer_id: int) -> Optional[Offer]: ...
    def save_offer(self, offer: Offer, now: datetime) -> Offer: ...
    def get_coupon(self, coupon_id: int) -> Optional[Coupon]: ...
    def save_coupon(self, coupon: Coupon) -> Coupon: ...
    def coupon_code_exists(self, code: str) -> bool: ...
    def customer_used_coupon(self, customer_id: int, coupon_id: int, exclude_booking_id: Optional[int] = None) -> bool: ...
    def list_taxes(self) -> list[Taxation]: ...

    # slots
    def get_slot(self, slot_id: int) -> Optional[Slot]: ...
    def list_slots(self, service_id: int, on_or_after: Optional[date] = None, on_date: Optional[date] = None) -> list[Slot]: ...
    def save_slots(self, slots: Iterable[Slot]) -> list[Slot]: ...
    def delete_slot(self, slot_id: int) -> None: ...
    def count_slot_bookings(self, slot_id: int) -> int: ...

    # booking aggregate
    def get_booking(self, booking_id: int) -> Optional[Booking]: ...
    def list_bookings(self, customer_id: Optional[int] = None, statuses: Optional[Iterable[BookingStatus]] = None, exclude_statuses: Optional[Iterable[BookingStatus]] = None) -> list[Booking]: ...
    def save_booking(self, booking: Booking) -> Booking: ...
    def save_booking_address(self, address: BookingAddress) -> BookingAddress: ...
    def get_booking_address(self, address_id: int) -> Optional[BookingAddress]: ...
    def list_booking_taxes(self, booking_id: int) -> list[BookingTax]: ...
    def replace_booking_taxes(self, booking_id: int, taxes: Iterable[BookingTax]) -> list[BookingTax]: ...
    def append_log(self, log: BookingLog) -> BookingLog: ...
    def list_logs(self, booking_id: int) -> list[BookingLog]: ...
    def get_warranty(self, warranty_id: int) -> Optional[Warranty]: ...
    def save_warranty(self, warranty: Warranty) -> Warranty: ...

    # ledger
    def add_transaction(self, transaction: Transaction) -> Transaction: ...
    def update_transaction(self, transaction: Transaction) -> Transaction: ...
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]: ...
    def transaction_id_exists(self, transaction_id: str) -> bool: ...
    def find_transaction(self, booking_id: int, type: PaymentType, transaction_status: Optional[str] = None) -> Optional[Transaction]: ...
    def list_transactions(self, booking_id: int) -> list[Transaction]: ...
