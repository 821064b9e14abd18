"""Booking coordinator: validated, conflict-free, atomic rental creation.

Every operation that can add a rental to a vehicle's schedule (new
booking, new dates, reviving a terminal rental) runs as:

1. read the vehicle and its booking_version
2. check conflicts against the vehicle's schedule (consistent read)
3. queue all writes plus a booking_version bump conditioned on the
   version read in step 1
4. commit in one DynamoDB transaction

If another writer changed the vehicle's schedule between 1 and 4, the
commit is cancelled and the attempt is repeated from step 1, up to
BOOKING_MAX_ATTEMPTS times.
"""

import datetime as dt
import re
import time
from typing import TYPE_CHECKING, Any

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from fleet.config import Settings
from fleet.models import (
    BLOCKING_RENTAL_STATUSES,
    TERMINAL_RENTAL_STATUSES,
    BookingConflict,
    BookingDetails,
    BookingRequest,
    BookingResult,
    Customer,
    ErrorCode,
    NotFound,
    PaymentStatus,
    Rental,
    RentalStatus,
    RequestValidationError,
    TransactionFailure,
    Vehicle,
    VehicleUnavailable,
)
from fleet.utils.ids import generate_id
from fleet.utils.logging import get_logger, log_booking_operation

from .conflicts import ConflictChecker
from .customers import CustomerRegistry
from .payment_service import PaymentService
from .pricing import calculate_price
from .rentals import RentalRepository
from .vehicles import VehicleService

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_email_adapter: TypeAdapter[str] = TypeAdapter(EmailStr)


def parse_date(value: Any, field: str) -> dt.date:
    """Parse a YYYY-MM-DD date.

    Raises:
        RequestValidationError: If the value is missing or malformed
    """
    if isinstance(value, dt.datetime):
        raise RequestValidationError("expected a date, not a timestamp", field=field)
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise RequestValidationError("date is required", field=field)
    text = value.strip()
    if not _DATE_RE.match(text):
        raise RequestValidationError("date must be YYYY-MM-DD", field=field)
    try:
        return dt.date.fromisoformat(text)
    except ValueError as e:
        raise RequestValidationError("not a calendar date", field=field) from e


def validate_span(start: dt.date, end: dt.date, today: dt.date) -> None:
    """Check that [start, end] is a bookable span.

    Raises:
        RequestValidationError: If start is in the past or after end
    """
    if start < today:
        raise RequestValidationError("start_date must not be in the past", field="start_date")
    if start > end:
        raise RequestValidationError("start_date must not be after end_date", field="end_date")


class BookingService:
    """Creates and changes rentals without ever double-booking a vehicle."""

    def __init__(self, db: "DynamoDBService", settings: Settings | None = None) -> None:
        """Initialize booking service.

        Args:
            db: DynamoDB service instance
            settings: Runtime settings. Defaults to the DB service's settings.
        """
        self.db = db
        self.settings = settings or db.settings
        self.vehicles = VehicleService(db)
        self.customers = CustomerRegistry(db)
        self.rentals = RentalRepository(db)
        self.conflicts = ConflictChecker(db)
        self.payments = PaymentService(db)

    # Validation

    def _parse_request(self, request: BookingRequest | dict[str, Any]) -> BookingRequest:
        if isinstance(request, BookingRequest):
            return request
        try:
            return BookingRequest.model_validate(request)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or None
            raise RequestValidationError(first.get("msg", "invalid request"), field=field) from e

    def _normalize_email(self, email: str, field: str = "customer.email") -> str:
        email = email.strip()
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError as e:
            raise RequestValidationError("invalid email address", field=field) from e
        if self.settings.email_case_insensitive:
            email = email.lower()
        return email

    def validate_request(
        self,
        request: BookingRequest | dict[str, Any],
        today: dt.date | None = None,
    ) -> tuple[BookingRequest, dt.date, dt.date, str]:
        """Validate a booking request without touching storage.

        Returns:
            The parsed request, start date, end date and normalized email

        Raises:
            RequestValidationError: On any missing, malformed or illogical field
        """
        today = today or dt.date.today()
        req = self._parse_request(request)

        required = {
            "vehicle_id": req.vehicle_id,
            "customer.name": req.customer.name,
            "customer.email": req.customer.email,
            "customer.phone": req.customer.phone,
        }
        for field, value in required.items():
            if not value or not value.strip():
                raise RequestValidationError("field is required", field=field)

        start = parse_date(req.start_date, "start_date")
        end = parse_date(req.end_date, "end_date")
        validate_span(start, end, today)
        email = self._normalize_email(req.customer.email)
        return req, start, end, email

    # Attempt control

    def _deadline(self) -> float:
        return time.monotonic() + self.settings.transaction_timeout_seconds

    def _check_deadline(self, deadline: float, operation: str) -> None:
        if time.monotonic() > deadline:
            logger.warning(
                "%s exceeded its %.1fs deadline",
                operation,
                self.settings.transaction_timeout_seconds,
            )
            raise TransactionFailure(details={"operation": operation, "reason": "timeout"})

    def _load_bookable_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self.vehicles.get_vehicle(vehicle_id)
        if vehicle is None or not vehicle.availability:
            raise VehicleUnavailable(details={"vehicle_id": vehicle_id})
        return vehicle

    def _ensure_free(
        self,
        vehicle_id: str,
        start: dt.date,
        end: dt.date,
        exclude_rental_id: str | None = None,
    ) -> None:
        conflicts = self.conflicts.find_conflicts(vehicle_id, start, end, exclude_rental_id)
        if conflicts:
            raise BookingConflict(
                details={
                    "vehicle_id": vehicle_id,
                    "conflicting_rental_id": conflicts[0].rental_id,
                }
            )

    # Operations

    def create_booking(self, request: BookingRequest | dict[str, Any]) -> BookingResult:
        """Create a rental, its customer and optionally its payment atomically.

        Args:
            request: Booking request (model or raw dict)

        Returns:
            BookingResult for the committed rental

        Raises:
            RequestValidationError: Invalid request, nothing read or written
            VehicleUnavailable: Vehicle missing or disabled
            BookingConflict: Vehicle already booked on an overlapping day
            TransactionFailure: Storage failure or timeout, nothing written
        """
        req, start, end, email = self.validate_request(request)
        deadline = self._deadline()

        for attempt in range(1, self.settings.booking_max_attempts + 1):
            self._check_deadline(deadline, "create_booking")

            vehicle = self._load_bookable_vehicle(req.vehicle_id)
            self._ensure_free(vehicle.vehicle_id, start, end)
            pricing = calculate_price(vehicle.daily_rate, start, end)

            tx = self.db.transaction()
            self.vehicles.lock_for_booking(tx, vehicle)
            customer_id = self.customers.upsert(
                tx, email, req.customer.name.strip(), req.customer.phone.strip()
            )

            now = dt.datetime.now(dt.UTC)
            paid = bool(req.payment_intent_ref)
            rental = Rental(
                rental_id=generate_id("RNT"),
                customer_id=customer_id,
                vehicle_id=vehicle.vehicle_id,
                start_date=start,
                end_date=end,
                total_amount=pricing.total,
                status=RentalStatus.CONFIRMED if paid else RentalStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self.rentals.queue_insert(tx, rental)

            payment = None
            if paid:
                payment = self.payments.build_payment(
                    rental.rental_id,
                    pricing.total,
                    PaymentStatus.COMPLETED,
                    provider_ref=req.payment_intent_ref,
                )
                self.payments.queue_insert(tx, payment)

            if tx.commit():
                log_booking_operation(
                    logger,
                    "create_booking",
                    rental_id=rental.rental_id,
                    vehicle_id=vehicle.vehicle_id,
                    customer_id=customer_id,
                    status=rental.status.value,
                    total=str(pricing.total),
                    attempt=attempt,
                )
                return BookingResult(
                    rental_id=rental.rental_id,
                    status=rental.status,
                    pricing=pricing,
                    customer_id=customer_id,
                    payment_id=payment.payment_id if payment else None,
                    payment_status=payment.status if payment else PaymentStatus.PENDING,
                    start_date=start,
                    end_date=end,
                )

            logger.info(
                "Booking attempt %d for vehicle %s lost a concurrent update, re-checking",
                attempt,
                vehicle.vehicle_id,
            )

        log_booking_operation(
            logger, "create_booking", vehicle_id=req.vehicle_id, error="contention"
        )
        raise TransactionFailure(details={"operation": "create_booking", "reason": "contention"})

    def reschedule_rental(
        self,
        rental_id: str,
        start_date: Any,
        end_date: Any,
    ) -> Rental:
        """Move a rental to new dates, repricing it.

        The rental's own dates never conflict with the new ones.
        A rental that has already started keeps its start date and may only
        move its end; only a changed date has to lie today or later.

        Raises:
            RequestValidationError: Bad dates or a terminal rental
            NotFound: Unknown rental
            VehicleUnavailable: Vehicle disabled since the booking
            BookingConflict: New dates overlap another rental
            TransactionFailure: Storage failure or timeout
        """
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start > end:
            raise RequestValidationError("start_date must not be after end_date", field="end_date")
        today = dt.date.today()
        deadline = self._deadline()

        for attempt in range(1, self.settings.booking_max_attempts + 1):
            self._check_deadline(deadline, "reschedule_rental")

            rental = self._get_rental_or_raise(rental_id)
            if rental.status in TERMINAL_RENTAL_STATUSES:
                raise RequestValidationError(
                    f"a {rental.status.value} rental cannot be rescheduled", field="rental_id"
                )
            if start != rental.start_date and start < today:
                raise RequestValidationError("start_date must not be in the past", field="start_date")
            if end != rental.end_date and end < today:
                raise RequestValidationError("end_date must not be in the past", field="end_date")
            if (rental.start_date, rental.end_date) == (start, end):
                return rental

            vehicle = self._load_bookable_vehicle(rental.vehicle_id)
            self._ensure_free(vehicle.vehicle_id, start, end, exclude_rental_id=rental_id)
            pricing = calculate_price(vehicle.daily_rate, start, end)

            now = dt.datetime.now(dt.UTC)
            tx = self.db.transaction()
            self.vehicles.lock_for_booking(tx, vehicle)
            self.rentals.queue_reschedule(tx, rental, start, end, pricing.total, now)

            payment = self.payments.get_payment_for_rental(rental_id)
            if payment and payment.status == PaymentStatus.PENDING:
                self.payments.queue_amount_update(tx, rental_id, pricing.total, now)

            if tx.commit():
                log_booking_operation(
                    logger,
                    "reschedule_rental",
                    rental_id=rental_id,
                    vehicle_id=vehicle.vehicle_id,
                    status=rental.status.value,
                    total=str(pricing.total),
                    attempt=attempt,
                )
                return rental.model_copy(
                    update={
                        "start_date": start,
                        "end_date": end,
                        "total_amount": pricing.total,
                        "updated_at": now,
                    }
                )

        raise TransactionFailure(details={"operation": "reschedule_rental", "reason": "contention"})

    def update_rental_status(self, rental_id: str, status: RentalStatus) -> Rental:
        """Move a rental to a new lifecycle status.

        Bringing a cancelled or completed rental back into a blocking status
        re-checks its dates under the vehicle lock.

        Raises:
            NotFound: Unknown rental
            VehicleUnavailable, BookingConflict: When reviving a rental
            TransactionFailure: Storage failure or timeout
        """
        deadline = self._deadline()

        for attempt in range(1, self.settings.booking_max_attempts + 1):
            self._check_deadline(deadline, "update_rental_status")

            rental = self._get_rental_or_raise(rental_id)
            if rental.status == status:
                return rental

            now = dt.datetime.now(dt.UTC)
            tx = self.db.transaction()
            reviving = (
                rental.status in TERMINAL_RENTAL_STATUSES
                and status in BLOCKING_RENTAL_STATUSES
            )
            if reviving:
                vehicle = self._load_bookable_vehicle(rental.vehicle_id)
                self._ensure_free(
                    vehicle.vehicle_id, rental.start_date, rental.end_date,
                    exclude_rental_id=rental_id,
                )
                self.vehicles.lock_for_booking(tx, vehicle)
            self.rentals.queue_status(tx, rental, status, now)

            if tx.commit():
                log_booking_operation(
                    logger,
                    "update_rental_status",
                    rental_id=rental_id,
                    vehicle_id=rental.vehicle_id,
                    status=status.value,
                    previous=rental.status.value,
                    attempt=attempt,
                )
                return rental.model_copy(update={"status": status, "updated_at": now})

        raise TransactionFailure(details={"operation": "update_rental_status", "reason": "contention"})

    def cancel_rental(self, rental_id: str) -> Rental:
        """Cancel a rental, releasing its dates."""
        return self.update_rental_status(rental_id, RentalStatus.CANCELLED)

    def get_booking(self, rental_id: str) -> BookingDetails:
        """Get a rental with its customer, vehicle and payment.

        Raises:
            NotFound: Unknown rental
        """
        rental = self._get_rental_or_raise(rental_id)
        return BookingDetails(
            rental=rental,
            customer=self.customers.get_customer(rental.customer_id),
            vehicle=self.vehicles.get_vehicle(rental.vehicle_id),
            payment=self.payments.get_payment_for_rental(rental_id),
        )

    def list_customer_bookings(self, customer_id: str) -> list[Rental]:
        """All rentals of a customer, newest first.

        Raises:
            NotFound: Unknown customer
        """
        if self.customers.get_customer(customer_id) is None:
            raise NotFound(ErrorCode.CUSTOMER_NOT_FOUND, {"customer_id": customer_id})
        return self.rentals.list_for_customer(customer_id)

    def find_customer(self, email: str) -> Customer:
        """Look up a customer by email, folded the same way bookings fold it.

        Raises:
            RequestValidationError: Malformed email
            NotFound: No customer registered under this email
        """
        customer = self.customers.get_customer_by_email(self._normalize_email(email, "email"))
        if customer is None:
            raise NotFound(ErrorCode.CUSTOMER_NOT_FOUND, {"email": email})
        return customer

    def _get_rental_or_raise(self, rental_id: str) -> Rental:
        rental = self.rentals.get_rental(rental_id)
        if rental is None:
            raise NotFound(ErrorCode.RENTAL_NOT_FOUND, {"rental_id": rental_id})
        return rental
