"""
In-memory persistence for the booking engine.

Every read hands out a deep copy and every write stores one, so records
behave like rows: a caller sees its own changes only after saving them.
``atomic()`` serialises mutations on a store-wide re-entrant lock and
restores a snapshot of every table if the block raises.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Optional, TypeVar

from pydantic import BaseModel

from booking_engine.errors import DuplicateLedgerEntry
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

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_TABLES = (
    "services", "categories", "subcategories", "tasks", "customers", "employees",
    "addresses", "locations", "task_locations", "category_locations",
    "subcategory_locations", "offers", "coupons", "taxes", "slots", "bookings",
    "booking_addresses", "booking_taxes", "logs", "warranties", "transactions",
)


def _copy(record: Optional[M]) -> Optional[M]:
    return record.model_copy(deep=True) if record is not None else None


class InMemoryStore:
    """Dict-backed implementation of ``BookingRepository``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._sequences: dict[str, int] = {}
        self._tables: dict[str, dict[Any, Any]] = {name: {} for name in _TABLES}

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = copy.deepcopy((self._tables, self._sequences)) if outermost else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if outermost and snapshot is not None:
                    self._tables, self._sequences = snapshot
                    logger.debug("Transaction rolled back")
                raise
            finally:
                self._depth -= 1

    def next_id(self, table: str) -> int:
        with self._lock:
            self._sequences[table] = self._sequences.get(table, 0) + 1
            return self._sequences[table]

    def _get(self, table: str, key: Any) -> Any:
        return _copy(self._tables[table].get(key))

    def _put(self, table: str, key: Any, record: M) -> M:
        with self._lock:
            self._tables[table][key] = record.model_copy(deep=True)
        return record

    def _all(self, table: str) -> list[Any]:
        return [_copy(r) for r in self._tables[table].values()]

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    def get_service(self, service_id: int) -> Optional[Service]:
        return self._get("services", service_id)

    def save_service(self, service: Service) -> Service:
        return self._put("services", service.id, service)

    def get_category(self, category_id: int) -> Optional[Category]:
        return self._get("categories", category_id)

    def save_category(self, category: Category) -> Category:
        return self._put("categories", category.id, category)

    def get_subcategory(self, subcategory_id: int) -> Optional[Subcategory]:
        return self._get("subcategories", subcategory_id)

    def save_subcategory(self, subcategory: Subcategory) -> Subcategory:
        return self._put("subcategories", subcategory.id, subcategory)

    def get_task(self, task_id: int) -> Optional[Task]:
        return self._get("tasks", task_id)

    def save_task(self, task: Task) -> Task:
        return self._put("tasks", task.id, task)

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        return self._get("customers", customer_id)

    def save_customer(self, customer: Customer) -> Customer:
        return self._put("customers", customer.id, customer)

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        return self._get("employees", employee_id)

    def save_employee(self, employee: Employee) -> Employee:
        return self._put("employees", employee.id, employee)

    def get_address(self, address_id: int) -> Optional[Address]:
        return self._get("addresses", address_id)

    def save_address(self, address: Address) -> Address:
        return self._put("addresses", address.id, address)

    # ------------------------------------------------------------------ #
    # Locations
    # ------------------------------------------------------------------ #

    def list_locations(self, active_only: bool = True) -> list[Location]:
        locations = [loc for loc in self._all("locations") if not loc.deleted]
        if active_only:
            locations = [loc for loc in locations if loc.active]
        return locations

    def save_location(self, location: Location) -> Location:
        return self._put("locations", location.id, location)

    def get_task_location(self, task_id: int, location_id: int) -> Optional[TaskLocation]:
        return self._get("task_locations", (task_id, location_id))

    def save_task_location(self, row: TaskLocation) -> TaskLocation:
        return self._put("task_locations", (row.task_id, row.location_id), row)

    def get_category_location(self, category_id: int, location_id: int) -> Optional[CategoryLocation]:
        return self._get("category_locations", (category_id, location_id))

    def save_category_location(self, row: CategoryLocation) -> CategoryLocation:
        return self._put("category_locations", (row.category_id, row.location_id), row)

    def get_subcategory_location(
        self, subcategory_id: int, location_id: int
    ) -> Optional[SubcategoryLocation]:
        return self._get("subcategory_locations", (subcategory_id, location_id))

    def save_subcategory_location(self, row: SubcategoryLocation) -> SubcategoryLocation:
        return self._put("subcategory_locations", (row.subcategory_id, row.location_id), row)

    # ------------------------------------------------------------------ #
    # Offers, coupons, taxes
    # ------------------------------------------------------------------ #

    def get_offer(self, offer_id: int) -> Optional[Offer]:
        return self._get("offers", offer_id)

    def save_offer(self, offer: Offer, now: datetime) -> Offer:
        offer.refresh_expiry(now)
        return self._put("offers", offer.id, offer)

    def get_coupon(self, coupon_id: int) -> Optional[Coupon]:
        return self._get("coupons", coupon_id)

    def save_coupon(self, coupon: Coupon) -> Coupon:
        return self._put("coupons", coupon.id, coupon)

    def coupon_code_exists(self, code: str) -> bool:
        return any(c.code == code for c in self._tables["coupons"].values())

    def customer_used_coupon(
        self, customer_id: int, coupon_id: int, exclude_booking_id: Optional[int] = None
    ) -> bool:
        return any(
            b.customer_id == customer_id
            and b.applied_coupon_id == coupon_id
            and not b.deleted
            and b.id != exclude_booking_id
            for b in self._tables["bookings"].values()
        )

    def list_taxes(self) -> list[Taxation]:
        return self._all("taxes")

    def save_taxation(self, taxation: Taxation) -> Taxation:
        return self._put("taxes", taxation.tax_name, taxation)

    # ------------------------------------------------------------------ #
    # Slots
    # ------------------------------------------------------------------ #

    def get_slot(self, slot_id: int) -> Optional[Slot]:
        return self._get("slots", slot_id)

    def list_slots(
        self,
        service_id: int,
        on_or_after: Optional[date] = None,
        on_date: Optional[date] = None,
    ) -> list[Slot]:
        slots = [s for s in self._all("slots") if s.service_id == service_id]
        if on_or_after is not None:
            slots = [s for s in slots if s.date >= on_or_after]
        if on_date is not None:
            slots = [s for s in slots if s.date == on_date]
        return sorted(slots, key=lambda s: (s.start_time, s.id))

    def save_slots(self, slots: Iterable[Slot]) -> list[Slot]:
        return [self._put("slots", s.id, s) for s in slots]

    def delete_slot(self, slot_id: int) -> None:
        with self._lock:
            if self.count_slot_bookings(slot_id):
                raise ValueError(f"Slot {slot_id} is referenced by bookings and cannot be deleted")
            self._tables["slots"].pop(slot_id, None)

    def count_slot_bookings(self, slot_id: int) -> int:
        return sum(1 for b in self._tables["bookings"].values() if b.slot_id == slot_id)

    # ------------------------------------------------------------------ #
    # Booking aggregate
    # ------------------------------------------------------------------ #

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self._get("bookings", booking_id)

    def list_bookings(
        self,
        customer_id: Optional[int] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
        exclude_statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> list[Booking]:
        bookings = [b for b in self._all("bookings") if not b.deleted]
        if customer_id is not None:
            bookings = [b for b in bookings if b.customer_id == customer_id]
        if statuses:
            wanted = set(statuses)
            bookings = [b for b in bookings if b.status in wanted]
        if exclude_statuses:
            unwanted = set(exclude_statuses)
            bookings = [b for b in bookings if b.status not in unwanted]
        return sorted(bookings, key=lambda b: (b.created_at, b.id), reverse=True)

    def save_booking(self, booking: Booking) -> Booking:
        return self._put("bookings", booking.id, booking)

    def save_booking_address(self, address: BookingAddress) -> BookingAddress:
        return self._put("booking_addresses", address.id, address)

    def get_booking_address(self, address_id: int) -> Optional[BookingAddress]:
        return self._get("booking_addresses", address_id)

    def list_booking_taxes(self, booking_id: int) -> list[BookingTax]:
        return [_copy(t) for t in self._tables["booking_taxes"].get(booking_id, [])]

    def replace_booking_taxes(self, booking_id: int, taxes: Iterable[BookingTax]) -> list[BookingTax]:
        rows = [t.model_copy(update={"booking_id": booking_id}) for t in taxes]
        with self._lock:
            self._tables["booking_taxes"].pop(booking_id, None)
            self._tables["booking_taxes"][booking_id] = [r.model_copy(deep=True) for r in rows]
        return rows

    def append_log(self, log: BookingLog) -> BookingLog:
        with self._lock:
            if log.id in self._tables["logs"]:
                raise ValueError(f"Booking log {log.id} already exists")
            self._tables["logs"][log.id] = log.model_copy(deep=True)
        return log

    def list_logs(self, booking_id: int) -> list[BookingLog]:
        return [log for log in self._all("logs") if log.booking_id == booking_id]

    def get_warranty(self, warranty_id: int) -> Optional[Warranty]:
        return self._get("warranties", warranty_id)

    def save_warranty(self, warranty: Warranty) -> Warranty:
        return self._put("warranties", warranty.id, warranty)

    # ------------------------------------------------------------------ #
    # Ledger
    # ------------------------------------------------------------------ #

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with self._lock:
            if transaction.id in self._tables["transactions"]:
                raise ValueError(f"Transaction {transaction.id} already exists")
            if transaction.type == PaymentType.CREDITED and self.find_transaction(
                transaction.booking_id, PaymentType.CREDITED
            ):
                raise DuplicateLedgerEntry(
                    f"Booking #{transaction.booking_id} already has a credited transaction"
                )
            self._tables["transactions"][transaction.id] = transaction.model_copy(deep=True)
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        return self._put("transactions", transaction.id, transaction)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._get("transactions", transaction_id)

    def transaction_id_exists(self, transaction_id: str) -> bool:
        return transaction_id in self._tables["transactions"]

    def find_transaction(
        self,
        booking_id: int,
        type: PaymentType,
        transaction_status: Optional[str] = None,
    ) -> Optional[Transaction]:
        for txn in self.list_transactions(booking_id):
            if txn.type != type:
                continue
            if transaction_status is not None and txn.transaction_status != transaction_status:
                continue
            return txn
        return None

    def list_transactions(self, booking_id: int) -> list[Transaction]:
        txns = [t for t in self._all("transactions") if t.booking_id == booking_id]
        return sorted(txns, key=lambda t: t.created_at, reverse=True)
