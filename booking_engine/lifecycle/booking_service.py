"""
Booking lifecycle service.

Every mutation of a booking goes through this class. Each public operation
runs its status write together with the matching audit log and ledger
writes inside ``repository.atomic()``; collaborators (notifier, payment
gateway) are only called after that unit commits.

Usage:
    service = BookingService(store, FeasibilityResolver(store, GeoMatcher()),
                             gateway=MockPaymentGateway(), notifier=LoggingNotifier())
    booking = service.create(BookingCreateParams(customer_id=1, address_id=1,
                                                 service_id=1, task_id=1, slot_id=10))
"""

from datetime import datetime
from typing import Iterable, Optional

from booking_engine.config import settings
from booking_engine.errors import (
    GatewayError,
    InfeasibleLocation,
    InvalidEmployee,
    InvalidOfferOrCoupon,
    InvalidService,
    InvalidStatusTransition,
    NotFound,
    SlotUnavailable,
    UnauthorizedBookingAccess,
    WarrantyExpired,
)
from booking_engine.integrations.notifications import BookingNotification, LoggingNotifier, Notifier
from booking_engine.integrations.payments import GatewayResult, MockPaymentGateway, PaymentGateway
from booking_engine.lifecycle.ledger import Ledger
from booking_engine.lifecycle.state_machine import BookingStateMachine
from booking_engine.lifecycle.warranty import is_within_warranty
from booking_engine.location.feasibility import (
    Everywhere,
    FeasibilityResolver,
    FeasibilityResult,
    Infeasible,
    Selector,
)
from booking_engine.logging_context import get_request_logger
from booking_engine.pricing.coupons import CouponService
from booking_engine.pricing.engine import PricingEngine
from booking_engine.pricing.offers import apply_coupon, apply_offer
from booking_engine.pricing.tax import compute_tax, select_tax_rows
from booking_engine.scheduling.slot_service import is_bookable
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingAction,
    BookingAddress,
    BookingCreateParams,
    BookingLog,
    BookingStatus,
    BookingStatusUpdate,
    BookingTax,
    PaymentMode,
    PaymentType,
    Quotation,
    Transaction,
    Warranty,
    WarrantyRequestParams,
    WarrantyStatus,
)
from booking_engine.schemas.catalog_schema import Address, Coupon, Geolocation, Offer, Service
from booking_engine.storage.repository import BookingRepository
from booking_engine.utils import Clock, normalize_phone, to_money, utc_now

logger = get_request_logger(__name__)

S = BookingStatus

INITIAL_STATUSES = frozenset({S.INITIATED, S.BOOKED})
PAID_ONLINE_STATUSES = frozenset({S.PAYMENT_COMPLETED, S.BOOKED, S.APPROVED})
COUPON_STATUSES = frozenset({S.INITIATED, S.PAYMENT_FAILED, S.BOOKED, S.APPROVED})
CUSTOMER_HIDDEN_STATUSES = (S.INITIATED, S.DELETED_BY_USER)


def payment_reference(booking_id: int) -> str:
    """Merchant transaction id used for a booking's online payment."""
    return f"booking-{booking_id}"


class BookingService:
    """Creates bookings and drives them through the status table."""

    def __init__(
        self,
        repository: BookingRepository,
        resolver: FeasibilityResolver,
        pricing: Optional[PricingEngine] = None,
        coupons: Optional[CouponService] = None,
        ledger: Optional[Ledger] = None,
        gateway: Optional[PaymentGateway] = None,
        notifier: Optional[Notifier] = None,
        state_machine: Optional[BookingStateMachine] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repository
        self._resolver = resolver
        self._clock = clock
        self._pricing = pricing or PricingEngine()
        self._coupons = coupons or CouponService(repository, clock=clock)
        self._ledger = ledger or Ledger(repository, clock=clock)
        self._gateway = gateway or MockPaymentGateway()
        self._notifier = notifier or LoggingNotifier()
        self._state_machine = state_machine or BookingStateMachine()

    # ------------------------------------------------------------------ #
    # Creation and pricing
    # ------------------------------------------------------------------ #

    def create(self, params: BookingCreateParams, actor_id: Optional[int] = None) -> Booking:
        """
        Validate the selection, resolve feasibility and price, and persist a booking.

        Raises:
            NotFound: Unknown customer, address, service, task or slot.
            InvalidService: Inactive service/category/subcategory or foreign task.
            SlotUnavailable: Slot inactive, retired or inside the advance-booking window.
            InfeasibleLocation: The service is not delivered at the address.
            InvalidOfferOrCoupon: The coupon cannot be applied.
            InvalidStatusTransition: ``params.status`` is not a valid initial status.
        """
        status = params.status or S.INITIATED
        if status not in INITIAL_STATUSES:
            raise InvalidStatusTransition(S.INITIATED.value, status.value)

        actor = actor_id if actor_id is not None else params.customer_id
        now = self._clock()
        with self._repo.atomic():
            address = self._customer_address(params.customer_id, params.address_id)
            service = self._validate_selection(params.service_id, params.task_id)
            self._validate_slot(service, params.slot_id)

            feasibility = self._feasibility(service, params.task_id, address.geolocation)
            if isinstance(feasibility, Infeasible):
                raise InfeasibleLocation(feasibility.message)
            quotation = self._price(
                feasibility, params.customer_id, address.geolocation, params.coupon_id
            )

            snapshot = self._snapshot_address(address)
            booking = Booking(
                id=self._repo.next_id("bookings"),
                customer_id=params.customer_id,
                address_id=snapshot.id,
                service_id=service.id,
                task_id=params.task_id,
                slot_id=params.slot_id,
                category_id=service.category_id,
                subcategory_id=service.subcategory_id,
                is_online_payment=params.is_online_payment,
                status=status,
                created_at=now,
                updated_at=now,
                **self._pricing_fields(quotation),
            )
            self._repo.save_booking(booking)
            self._repo.replace_booking_taxes(booking.id, quotation.taxes)
            self._log(booking, actor, BookingAction.CREATED, "created", status=status)

        logger.info(
            "Booking #%d created for customer #%d: %s, total %s",
            booking.id, booking.customer_id, status.value, booking.total,
        )
        self._notify(booking, event="booking_created")
        return booking

    def get_quotation(self, params: BookingCreateParams) -> Quotation:
        """Price a prospective booking without persisting anything. The slot is not checked."""
        address = self._customer_address(params.customer_id, params.address_id)
        service = self._validate_selection(params.service_id, params.task_id)
        feasibility = self._feasibility(service, params.task_id, address.geolocation)
        if isinstance(feasibility, Infeasible):
            raise InfeasibleLocation(feasibility.message)
        return self._price(feasibility, params.customer_id, address.geolocation, params.coupon_id)

    def change_address(
        self, booking_id: int, address_id: int, customer_id: Optional[int] = None
    ) -> Optional[Booking]:
        """
        Move a booking to another address, re-resolving feasibility and price.

        Returns ``None`` and leaves the booking untouched when the new
        address is not serviceable.
        """
        booking = self._owned_booking(booking_id, customer_id)
        address = self._customer_address(booking.customer_id, address_id)
        service = self._service(booking.service_id)

        feasibility = self._feasibility(service, booking.task_id, address.geolocation)
        if isinstance(feasibility, Infeasible):
            logger.info("Booking #%d: address #%d not serviceable", booking_id, address_id)
            return None
        quotation = self._reprice_with_kept_coupon(
            feasibility, address.geolocation, booking.applied_coupon_id
        )
        if booking.applied_coupon_id is not None and quotation.applied_coupon_id is None:
            logger.info(
                "Booking #%d: coupon #%d no longer applies at the new address; dropped",
                booking_id, booking.applied_coupon_id,
            )

        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            snapshot = self._snapshot_address(address)
            booking = booking.model_copy(update={
                "address_id": snapshot.id,
                "updated_at": self._clock(),
                **self._pricing_fields(quotation),
            })
            self._repo.save_booking(booking)
            self._repo.replace_booking_taxes(booking.id, quotation.taxes)

        logger.info("Booking #%d moved to address #%d, total %s", booking.id, address_id, booking.total)
        return booking

    def apply_coupon(self, booking_id: int, coupon_id: int, customer_id: Optional[int] = None) -> Booking:
        """Apply a coupon on top of the booking's offer-discounted subtotal and recompute tax."""
        with self._repo.atomic():
            booking = self._owned_booking(booking_id, customer_id)
            if booking.status not in COUPON_STATUSES or self._paid_online(booking):
                raise InvalidOfferOrCoupon(
                    f"Coupons cannot be applied to a booking with status {booking.status.value}"
                )

            now = self._clock()
            post_offer = to_money(booking.sub_total - booking.offer_discount)
            coupon, offer = self._coupons.check_applicable(
                coupon_id, booking.customer_id, post_offer, exclude_booking_id=booking.id
            )
            net_total, applied_id, discount = apply_coupon(post_offer, coupon, offer, now)

            address = self._repo.get_booking_address(booking.address_id)
            rows = select_tax_rows(self._repo.list_taxes(), address.geolocation.address_line)
            total_tax, lines = compute_tax(net_total, rows)

            booking.applied_coupon_id = applied_id
            booking.coupon_discount = discount
            booking.total_without_tax = net_total
            booking.total_tax = total_tax
            booking.total = to_money(net_total + total_tax)
            booking.updated_at = now
            self._repo.save_booking(booking)
            self._repo.replace_booking_taxes(booking.id, lines)

        logger.info("Coupon #%d applied to booking #%d, total %s", coupon_id, booking.id, booking.total)
        return booking

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def show(self, booking_id: int, customer_id: Optional[int] = None) -> Booking:
        """Fetch a booking; a customer may only read their own."""
        return self._owned_booking(booking_id, customer_id)

    def list_bookings(
        self,
        customer_id: Optional[int] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> list[Booking]:
        """Newest first. Customers never see drafts or bookings they deleted."""
        exclude = CUSTOMER_HIDDEN_STATUSES if customer_id is not None else None
        return self._repo.list_bookings(
            customer_id=customer_id, statuses=statuses, exclude_statuses=exclude
        )

    def fetch_logs(self, booking_id: int) -> list[BookingLog]:
        if self._repo.get_booking(booking_id) is None:
            raise NotFound(f"Booking #{booking_id} not found")
        logs = self._repo.list_logs(booking_id)
        return sorted(logs, key=lambda log: (log.created_at, log.id), reverse=True)

    def taxes(self, booking_id: int) -> list[BookingTax]:
        return self._repo.list_booking_taxes(booking_id)

    # ------------------------------------------------------------------ #
    # Status changes
    # ------------------------------------------------------------------ #

    def transition(self, booking_id: int, target: BookingStatus, actor_id: int) -> Booking:
        """
        Move a booking to ``target`` if the status table allows it.

        Raises:
            InvalidStatusTransition: The jump is not in the table; nothing is written.
        """
        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            self._apply_status(booking, target, actor_id)
        return self._after_commit(booking)

    def update_status(self, booking_id: int, params: BookingStatusUpdate, actor_id: int) -> Booking:
        """Admin status update. Rejecting an online-paid booking continues into a refund."""
        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            online = params.online_payment_change()
            if online is not None:
                booking.is_online_payment = online
            self._apply_status(booking, params.status, actor_id)
            if params.status == S.REJECTED and booking.is_online_payment:
                self._apply_status(booking, S.REFUND_PENDING, actor_id)
        return self._after_commit(booking)

    def cancel(self, booking_id: int, customer_id: Optional[int] = None) -> Booking:
        """
        Customer cancel. Online-paid bookings go to ``refund_pending`` first and
        land on ``cancelled`` once the refund completes.
        """
        with self._repo.atomic():
            booking = self._owned_booking(booking_id, customer_id)
            actor = customer_id if customer_id is not None else booking.customer_id
            target = S.REFUND_PENDING if self._paid_online(booking) else S.CANCELLED
            if target == S.REFUND_PENDING:
                booking.cancellation_requested = True
            self._apply_status(booking, target, actor)
        return self._after_commit(booking)

    def delete(self, booking_id: int, actor_id: int) -> Booking:
        """Admin soft delete."""
        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            booking.deleted = True
            booking.updated_at = self._clock()
            self._repo.save_booking(booking)
        logger.info("Booking #%d soft-deleted by #%d", booking_id, actor_id)
        return booking

    def delete_by_customer(self, booking_id: int, customer_id: int) -> Booking:
        with self._repo.atomic():
            booking = self._owned_booking(booking_id, customer_id)
            self._apply_status(booking, S.DELETED_BY_USER, customer_id)
            booking.deleted = True
            self._repo.save_booking(booking)
        logger.info("Booking #%d deleted by customer #%d", booking_id, customer_id)
        return booking

    def assign_employee(self, booking_id: int, employee_id: int, actor_id: int) -> Booking:
        """
        First assignment approves the booking; a later one is the warranty visit
        and only sets ``warranty_employee_id``. The warranty visit can only be
        assigned once the warranty request is accepted.

        Raises:
            NotFound: Unknown employee.
            InvalidEmployee: Employee is blocked or deleted.
            InvalidStatusTransition: The booking is already assigned and has no
                accepted warranty request.
        """
        employee = self._repo.get_employee(employee_id)
        if employee is None:
            raise NotFound(f"Employee #{employee_id} not found")
        if employee.blocked or employee.deleted:
            raise InvalidEmployee(f"Employee {employee.name} cannot be assigned")

        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            message = f"assigned to {employee.name}"
            if booking.employee_id is None:
                self._state_machine.validate(booking, S.APPROVED)
                booking.employee_id = employee.id
                self._log(booking, actor_id, BookingAction.ASSIGNED, message, employee_id=employee.id)
                self._apply_status(booking, S.APPROVED, actor_id)
            elif booking.status == S.WARRANTY_REQUEST_ACCEPTED:
                booking.warranty_employee_id = employee.id
                booking.updated_at = self._clock()
                self._repo.save_booking(booking)
                self._log(booking, actor_id, BookingAction.ASSIGNED, message, employee_id=employee.id)
            else:
                raise InvalidStatusTransition(booking.status.value, S.WARRANTY_REQUEST_ACCEPTED.value)

        logger.info("Booking #%d %s", booking.id, message)
        return self._after_commit(booking)

    # ------------------------------------------------------------------ #
    # Warranty
    # ------------------------------------------------------------------ #

    def request_warranty(
        self, booking_id: int, params: WarrantyRequestParams, customer_id: Optional[int] = None
    ) -> Booking:
        """
        Open a warranty claim on a completed booking.

        Raises:
            WarrantyExpired: The service has no warranty or its window has passed.
            InvalidStatusTransition: The booking is not ``completed``.
        """
        with self._repo.atomic():
            booking = self._owned_booking(booking_id, customer_id)
            service = self._service(booking.service_id)
            now = self._clock()
            if not service.warranty_period or service.warranty_period_unit is None:
                raise WarrantyExpired(f"{service.name} has no warranty")
            if not is_within_warranty(
                booking.created_at, service.warranty_period, service.warranty_period_unit, now
            ):
                raise WarrantyExpired(f"Warranty for booking #{booking.id} has expired")
            self._state_machine.validate(booking, S.WARRANTY_REQUESTED)

            warranty = Warranty(
                id=self._repo.next_id("warranties"),
                booking_id=booking.id,
                reason=params.reason,
                description=params.description,
                attachment_ids=list(params.attachment_ids),
                created_at=now,
            )
            self._repo.save_warranty(warranty)
            booking.warranty_id = warranty.id
            self._apply_status(
                booking,
                S.WARRANTY_REQUESTED,
                booking.customer_id,
                action=BookingAction.WARRANTY_REQUESTED,
                message="warranty_requested",
            )
        return self._after_commit(booking)

    def decide_warranty(self, booking_id: int, approve: bool, actor_id: int) -> Booking:
        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            warranty = self._repo.get_warranty(booking.warranty_id) if booking.warranty_id else None
            if warranty is None:
                raise NotFound(f"Booking #{booking_id} has no warranty request")
            target = S.WARRANTY_REQUEST_ACCEPTED if approve else S.WARRANTY_REQUEST_REJECTED
            self._apply_status(booking, target, actor_id)
            warranty.status = WarrantyStatus.APPROVED if approve else WarrantyStatus.REJECTED
            self._repo.save_warranty(warranty)
        return self._after_commit(booking)

    # ------------------------------------------------------------------ #
    # Online payment
    # ------------------------------------------------------------------ #

    def initiate_payment(self, booking_id: int, customer_id: Optional[int] = None) -> GatewayResult:
        """
        Commit ``payment_pending`` and then open the payment with the gateway.

        Raises:
            GatewayError: The gateway call failed; the booking stays ``payment_pending``.
        """
        with self._repo.atomic():
            booking = self._owned_booking(booking_id, customer_id)
            booking.is_online_payment = True
            self._apply_status(booking, S.PAYMENT_PENDING, booking.customer_id)
        self._notify(booking)

        result = self._gateway.initiate_payment(payment_reference(booking.id), booking.total)
        if not (result.is_pending or result.is_success):
            raise GatewayError(f"Payment for booking #{booking.id} not accepted: {result.code.value}")
        logger.info("Payment opened for booking #%d (%s)", booking.id, result.merchant_transaction_id)
        return result

    def record_payment_outcome(
        self, booking_id: int, result: GatewayResult, actor_id: Optional[int] = None
    ) -> Booking:
        """
        Apply a verified gateway callback or poll result. Replays are no-ops.

        Raises:
            GatewayError: The result is a gateway error, so the outcome is still unknown;
                the booking is left as it is.
        """
        if result.is_pending:
            logger.info("Payment for booking #%d is still pending", booking_id)
            return self._get_booking(booking_id)
        if result.is_gateway_error:
            raise GatewayError(
                f"Payment outcome for booking #{booking_id} unknown: {result.code.value}"
            )

        with self._repo.atomic():
            booking = self._get_booking(booking_id)
            actor = actor_id if actor_id is not None else booking.customer_id
            if booking.status != S.PAYMENT_PENDING and self._is_replayed_payment(booking, result):
                logger.info("Duplicate payment outcome for booking #%d ignored", booking_id)
                return booking
            if result.is_success:
                self._apply_status(booking, S.PAYMENT_COMPLETED, actor)
                self._ledger.credit(
                    booking,
                    provider=settings.ledger.online_provider,
                    mode=PaymentMode.ONLINE,
                    gateway_transaction_id=result.gateway_transaction_id,
                    transaction_status=result.transaction_status,
                )
                self._apply_status(booking, S.BOOKED, actor)
            else:
                self._apply_status(booking, S.PAYMENT_FAILED, actor)
        return self._after_commit(booking)

    def check_payment_status(self, booking_id: int, actor_id: Optional[int] = None) -> Booking:
        """Poll the gateway for a pending payment; settle a completed one to ``booked``."""
        booking = self._get_booking(booking_id)
        actor = actor_id if actor_id is not None else booking.customer_id
        if booking.status == S.PAYMENT_COMPLETED and booking.is_online_payment:
            return self.transition(booking_id, S.BOOKED, actor)
        if booking.status != S.PAYMENT_PENDING:
            return booking

        result = self._gateway.check_status(payment_reference(booking.id))
        if result.is_gateway_error:
            raise GatewayError(f"Payment status for booking #{booking.id} unavailable: {result.code.value}")
        return self.record_payment_outcome(booking_id, result, actor)

    # ------------------------------------------------------------------ #
    # Refunds
    # ------------------------------------------------------------------ #

    def request_refund(self, booking_id: int) -> Transaction:
        """
        Ask the gateway to refund a ``refund_pending`` booking and record the
        refund as ``Pending``. Returns the open refund if one already exists.

        Raises:
            NotFound: The booking has no credited transaction to refund.
            GatewayError: The gateway refused or failed; retry later.
        """
        booking = self._get_booking(booking_id)
        if booking.status != S.REFUND_PENDING:
            raise InvalidStatusTransition(booking.status.value, S.REFUND_PENDING.value)
        existing = self._ledger.pending_refund(booking.id)
        if existing is not None:
            return existing

        credited = self._repo.find_transaction(booking.id, PaymentType.CREDITED)
        if credited is None:
            raise NotFound(f"Original transaction missing for booking #{booking.id}")

        refund_id = self._ledger.new_transaction_id()
        result = self._gateway.refund(
            refund_id, credited.gateway_transaction_id or credited.id, credited.amount
        )
        if not (result.is_pending or result.is_success):
            raise GatewayError(f"Refund for booking #{booking.id} not accepted: {result.code.value}")

        with self._repo.atomic():
            return self._ledger.open_refund(
                booking,
                refund_id,
                credited.amount,
                provider=credited.provider,
                gateway_transaction_id=result.gateway_transaction_id,
            )

    def poll_refund(self, booking_id: int, actor_id: Optional[int] = None) -> Booking:
        """
        Resolve a pending refund against the gateway. "Still pending" leaves
        everything unchanged.

        Raises:
            NotFound: The booking is ``refund_pending`` without a pending refund.
        """
        booking = self._get_booking(booking_id)
        if booking.status != S.REFUND_PENDING:
            return booking
        refund = self._ledger.pending_refund(booking.id)
        if refund is None:
            raise NotFound(f"No pending refund for booking #{booking.id}")

        result = self._gateway.check_status(refund.id)
        if result.is_pending:
            logger.info("Refund %s for booking #%d is still pending", refund.id, booking.id)
            return booking
        if result.is_gateway_error:
            raise GatewayError(f"Refund status for booking #{booking.id} unavailable: {result.code.value}")
        return self._resolve_refund(refund, result, actor_id)

    def record_refund_outcome(
        self, refund_transaction_id: str, result: GatewayResult, actor_id: Optional[int] = None
    ) -> Booking:
        """
        Apply a verified refund callback. Replays on an already-resolved refund are no-ops.

        Raises:
            GatewayError: The result is a gateway error; the refund stays pending.
        """
        refund = self._repo.get_transaction(refund_transaction_id)
        if refund is None or refund.type != PaymentType.REFUNDED:
            raise NotFound(f"Refund transaction {refund_transaction_id} not found")
        if result.is_gateway_error:
            raise GatewayError(f"Refund {refund.id} outcome unknown: {result.code.value}")
        booking = self._get_booking(refund.booking_id)
        if result.is_pending or booking.status != S.REFUND_PENDING:
            logger.info("Refund %s: nothing to resolve (%s)", refund.id, result.code.value)
            return booking
        return self._resolve_refund(refund, result, actor_id)

    def _resolve_refund(
        self, refund: Transaction, result: GatewayResult, actor_id: Optional[int]
    ) -> Booking:
        target = S.REFUND_COMPLETED if result.is_success else S.REFUND_FAILED
        with self._repo.atomic():
            booking = self._get_booking(refund.booking_id)
            actor = actor_id if actor_id is not None else booking.customer_id
            self._ledger.set_status(refund, result.transaction_status)
            self._apply_status(booking, target, actor)
            if target == S.REFUND_COMPLETED and booking.cancellation_requested:
                self._apply_status(booking, S.CANCELLED, actor)
        return self._after_commit(booking)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _apply_status(
        self,
        booking: Booking,
        target: BookingStatus,
        actor_id: int,
        action: BookingAction = BookingAction.STATUS_CHANGED,
        message: Optional[str] = None,
    ) -> Booking:
        """Validate, log, persist and run the ledger side effect. Caller holds ``atomic()``."""
        self._state_machine.validate(booking, target)
        previous = booking.status
        self._log(booking, actor_id, action, message or f"status changed to {target.value}", status=target)
        booking.status = target
        booking.updated_at = self._clock()
        self._repo.save_booking(booking)

        if target == S.COMPLETED and not booking.is_online_payment:
            self._ledger.credit_offline(booking)

        logger.info(
            "Booking #%d: %s -> %s by #%d", booking.id, previous.value, target.value, actor_id
        )
        return booking

    def _after_commit(self, booking: Booking) -> Booking:
        self._notify(booking)
        if booking.status == S.REFUND_PENDING:
            self.request_refund(booking.id)
        return booking

    def _log(
        self,
        booking: Booking,
        actor_id: int,
        action: BookingAction,
        message: str,
        status: Optional[BookingStatus] = None,
        employee_id: Optional[int] = None,
    ) -> BookingLog:
        return self._repo.append_log(BookingLog(
            id=self._repo.next_id("logs"),
            booking_id=booking.id,
            action_by_id=actor_id,
            action=action,
            message=message,
            status=status,
            employee_id=employee_id,
            created_at=self._clock(),
        ))

    def _notify(self, booking: Booking, event: str = "booking_update") -> None:
        """Fire-and-forget; a failing notifier never affects the booking."""
        try:
            customer = self._repo.get_customer(booking.customer_id)
            employee_id = booking.employee_id
            if booking.status == S.WARRANTY_REQUEST_ACCEPTED and booking.warranty_employee_id:
                employee_id = booking.warranty_employee_id
            employee = self._repo.get_employee(employee_id) if employee_id else None
            self._notifier.notify(BookingNotification(
                event=event,
                booking=booking.model_copy(deep=True),
                mobile=normalize_phone(customer.mobile) if customer and customer.mobile else None,
                email=customer.email if customer else None,
                employee=employee,
            ))
        except Exception:
            logger.warning("Notification for booking #%d failed", booking.id, exc_info=True)

    def _get_booking(self, booking_id: int) -> Booking:
        booking = self._repo.get_booking(booking_id)
        if booking is None or booking.deleted:
            raise NotFound(f"Booking #{booking_id} not found")
        return booking

    def _owned_booking(self, booking_id: int, customer_id: Optional[int]) -> Booking:
        booking = self._get_booking(booking_id)
        if customer_id is not None and booking.customer_id != customer_id:
            raise UnauthorizedBookingAccess(
                f"Booking #{booking_id} does not belong to customer #{customer_id}"
            )
        return booking

    def _paid_online(self, booking: Booking) -> bool:
        return booking.is_online_payment and booking.status in PAID_ONLINE_STATUSES

    def _is_replayed_payment(self, booking: Booking, result: GatewayResult) -> bool:
        if result.is_success:
            return self._repo.find_transaction(booking.id, PaymentType.CREDITED) is not None
        return booking.status == S.PAYMENT_FAILED

    def _service(self, service_id: int) -> Service:
        service = self._repo.get_service(service_id)
        if service is None:
            raise NotFound(f"Service #{service_id} not found")
        return service

    def _customer_address(self, customer_id: int, address_id: int) -> Address:
        if self._repo.get_customer(customer_id) is None:
            raise NotFound(f"Customer #{customer_id} not found")
        address = self._repo.get_address(address_id)
        if address is None or address.user_id != customer_id:
            raise NotFound(f"Address #{address_id} not found")
        return address

    def _validate_selection(self, service_id: int, task_id: int) -> Service:
        service = self._service(service_id)
        if not service.active:
            raise InvalidService(f"{service.name} is not active")
        category = self._repo.get_category(service.category_id)
        if category is None or not category.active:
            raise InvalidService(f"Category of {service.name} is not active")
        subcategory = self._repo.get_subcategory(service.subcategory_id)
        if subcategory is None or not subcategory.active:
            raise InvalidService(f"Subcategory of {service.name} is not active")

        task = self._repo.get_task(task_id)
        if task is None:
            raise NotFound(f"Task #{task_id} not found")
        if task.service_id != service.id and task.id != service.inspection_task_id:
            raise InvalidService(f"Task {task.name} is not part of {service.name}")
        if not task.active:
            raise InvalidService(f"Task {task.name} is not active")
        return service

    def _validate_slot(self, service: Service, slot_id: int) -> None:
        slot = self._repo.get_slot(slot_id)
        if slot is None:
            raise NotFound(f"Slot #{slot_id} not found")
        if slot.service_id != service.id:
            raise SlotUnavailable(f"Slot #{slot_id} does not belong to {service.name}")
        if not is_bookable(slot, service, self._clock().date()):
            raise SlotUnavailable(f"Slot #{slot_id} is not available for booking")

    def _feasibility(
        self, service: Service, task_id: int, point: Geolocation
    ) -> FeasibilityResult:
        selector = Selector(
            service_id=service.id,
            category_id=service.category_id,
            subcategory_id=service.subcategory_id,
            task_id=None if task_id == service.inspection_task_id else task_id,
        )
        return self._resolver.resolve_point(point, selector)

    def _price(
        self,
        feasibility: FeasibilityResult,
        customer_id: int,
        point: Geolocation,
        coupon_id: Optional[int],
    ) -> Quotation:
        now = self._clock()
        coupon = coupon_offer = None
        if coupon_id is not None:
            post_offer, _, _ = apply_offer(feasibility.cost, feasibility.offer, now)
            coupon, coupon_offer = self._coupons.check_applicable(
                coupon_id, customer_id, post_offer
            )

        return self._quote(feasibility, point, now, coupon, coupon_offer)

    def _reprice_with_kept_coupon(
        self, feasibility: FeasibilityResult, point: Geolocation, coupon_id: Optional[int]
    ) -> Quotation:
        """Price without re-validating an already applied coupon; one that no longer applies is dropped."""
        coupon = self._repo.get_coupon(coupon_id) if coupon_id is not None else None
        coupon_offer = self._repo.get_offer(coupon.offer_id) if coupon is not None else None
        return self._quote(feasibility, point, self._clock(), coupon, coupon_offer)

    def _quote(
        self,
        feasibility: FeasibilityResult,
        point: Geolocation,
        now: datetime,
        coupon: Optional[Coupon],
        coupon_offer: Optional[Offer],
    ) -> Quotation:
        quotation = self._pricing.quote(
            feasibility.cost,
            feasibility.offer,
            self._repo.list_taxes(),
            point.address_line,
            now,
            coupon=coupon,
            coupon_offer=coupon_offer,
        )
        quotation.mapped_location_id = feasibility.location.id if feasibility.location else None
        quotation.available_everywhere = isinstance(feasibility, Everywhere)
        return quotation

    @staticmethod
    def _pricing_fields(quotation: Quotation) -> dict[str, object]:
        return {
            "mapped_location_id": quotation.mapped_location_id,
            "applied_offer_id": quotation.applied_offer_id,
            "applied_coupon_id": quotation.applied_coupon_id,
            "sub_total": quotation.sub_total,
            "offer_discount": quotation.offer_discount,
            "coupon_discount": quotation.coupon_discount,
            "total_without_tax": quotation.total_without_tax,
            "total_tax": quotation.total_tax,
            "total": quotation.total,
        }

    def _snapshot_address(self, address: Address) -> BookingAddress:
        return self._repo.save_booking_address(BookingAddress(
            id=self._repo.next_id("booking_addresses"),
            user_id=address.user_id,
            address_type=address.address_type,
            landmark=address.landmark,
            geolocation=address.geolocation.model_copy(deep=True),
        ))
