"""Persistence collaborator of the booking engine.

The engine reaches storage only through ``AbstractBookingRepository``:

- ``get`` / ``save`` / ``query`` for single booking documents,
- ``get_confirmed_bookings`` / ``get_blocked_dates`` for a property's calendar,
- ``run_transaction`` for the atomic read-validate-write that confirms a
  booking: the callback receives a snapshot of the calendar and returns the
  booking to store; the write only lands if nobody changed the calendar in
  between (optimistic compare-and-swap), otherwise ``CalendarConflict``.

Two implementations: ``DjangoBookingRepository`` (ORM rows, conditional
UPDATE on ``BookingCalendar.version``) and ``InMemoryBookingRepository``
(process-local, used by embedders without a database and by tests).
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Iterator, Optional, Tuple

from django.db import DatabaseError, IntegrityError, transaction  # type: ignore
from django.db.models import F, Q  # type: ignore

from shared.application.message_bus import MessageBus
from shared.application.uow import AbstractUnitOfWork, DjangoUnitOfWork, InMemoryUnitOfWork
from shared.domain.value_objects import DateRange
from shared.infrastructure.timestamps import normalize_date, normalize_timestamp

from .domain.entities import (
    Booking,
    BookingStatus,
    CancellationRecord,
    CancelledBy,
    GuestCounts,
)
from .domain.exceptions import BookingNotFound, CalendarConflict, PersistenceError, StaleBooking
from .domain.pricing import FeeSchedule, PriceBreakdown, PricingRules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarSnapshot:
    """Confirmed bookings and host blocks of one property at ``version``."""

    property_id: str
    version: int
    confirmed_bookings: Tuple[Booking, ...]
    blocked_dates: frozenset


@dataclass(frozen=True)
class BookingFilter:
    """Criteria for ``query``; unset fields match everything."""

    guest_id: Optional[str] = None
    host_id: Optional[str] = None
    property_id: Optional[str] = None
    statuses: Tuple[BookingStatus, ...] = ()
    check_out_on_or_before: Optional[date] = None

    def matches(self, booking: Booking) -> bool:
        if self.guest_id is not None and booking.guest_id != self.guest_id:
            return False
        if self.host_id is not None and booking.host_id != self.host_id:
            return False
        if self.property_id is not None and booking.property_id != self.property_id:
            return False
        if self.statuses and booking.status not in self.statuses:
            return False
        if self.check_out_on_or_before is not None and booking.check_out > self.check_out_on_or_before:
            return False
        return True


TransactionFn = Callable[[CalendarSnapshot], Booking]


class AbstractBookingRepository(ABC):
    """Narrow storage contract of the booking engine."""

    @abstractmethod
    def get(self, booking_id: str) -> Optional[Booking]:
        """Booking by id, or None"""

    @abstractmethod
    def get_confirmed_bookings(self, property_id: str) -> list[Booking]:
        """Bookings of the property whose stored status is CONFIRMED"""

    @abstractmethod
    def get_blocked_dates(self, property_id: str) -> list[date]:
        """Days the host blocked for the property"""

    @abstractmethod
    def save(self, booking: Booking) -> None:
        """
        Store ``booking`` if nobody else changed it since it was read

        Raises:
            StaleBooking: If the stored version differs from booking.version
        """

    @abstractmethod
    def run_transaction(self, property_id: str, fn: TransactionFn) -> Booking:
        """
        Atomically validate against a calendar snapshot and store a booking

        Raises:
            CalendarConflict: If the calendar changed after the snapshot
        """

    @abstractmethod
    def query(self, criteria: BookingFilter) -> list[Booking]:
        """Bookings matching ``criteria``, newest request first"""

    @abstractmethod
    def unit_of_work(self, bus: MessageBus | None = None) -> AbstractUnitOfWork:
        """Unit of work matching this store's transaction model"""

    def require(self, booking_id: str) -> Booking:
        booking = self.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking


# ============================================================================
# DJANGO ORM
# ============================================================================


@contextmanager
def _database_errors(action: str) -> Iterator[None]:
    try:
        yield
    except DatabaseError as exc:
        logger.error(f"Booking store failed during {action}: {exc}", exc_info=True)
        raise PersistenceError(f"{action} failed: {exc}") from exc


def booking_from_row(row) -> Booking:
    """Rebuild the aggregate from a ``bookings.Booking`` row."""

    cancellation = None
    if row.cancelled_at is not None:
        cancellation = CancellationRecord(
            cancelled_at=normalize_timestamp(row.cancelled_at),
            cancelled_by=CancelledBy(row.cancelled_by),
            refund_percent=row.refund_percent,
            refund_amount=row.refund_amount,
            reason=row.cancellation_reason,
        )

    return Booking(
        id=row.pk,
        property_id=row.property_id,
        guest_id=row.guest_id,
        host_id=row.host_id,
        stay=DateRange(normalize_date(row.check_in), normalize_date(row.check_out)),
        guests=GuestCounts(adults=row.adults, children=row.children, infants=row.infants),
        pricing_rules=PricingRules(
            base_price_per_night=row.base_price_per_night,
            cleaning_fee=row.cleaning_fee,
            weekly_discount_percent=row.weekly_discount_percent,
            monthly_discount_percent=row.monthly_discount_percent,
        ),
        fee_schedule=FeeSchedule(
            guest_service_fee_rate=row.guest_service_fee_rate,
            host_service_fee_rate=row.host_service_fee_rate,
            tax_rate=row.tax_rate,
        ),
        pricing=PriceBreakdown(
            nights=row.nights,
            nightly_rate=row.nightly_rate,
            subtotal=row.subtotal,
            discount_percent=row.discount_percent,
            discount_amount=row.discount_amount,
            cleaning_fee=row.cleaning_fee,
            guest_service_fee=row.guest_service_fee,
            tax=row.tax,
            total=row.total,
            host_payout=row.host_payout,
        ),
        cancellation_policy_id=row.cancellation_policy,
        status=BookingStatus(row.status),
        special_requests=row.special_requests,
        confirmed_at=normalize_timestamp(row.confirmed_at) if row.confirmed_at else None,
        completed_at=normalize_timestamp(row.completed_at) if row.completed_at else None,
        cancellation=cancellation,
        version=row.version,
        created_at=normalize_timestamp(row.created_at),
        updated_at=normalize_timestamp(row.updated_at),
    )


def booking_to_fields(booking: Booking) -> dict:
    """Column values of ``booking`` (everything except id and version)."""

    record = booking.cancellation
    return {
        "property_id": booking.property_id,
        "guest_id": booking.guest_id,
        "host_id": booking.host_id,
        "check_in": booking.stay.start_date,
        "check_out": booking.stay.end_date,
        "adults": booking.guests.adults,
        "children": booking.guests.children,
        "infants": booking.guests.infants,
        "status": booking.status.value,
        "special_requests": booking.special_requests,
        "cancellation_policy": booking.cancellation_policy_id,
        "base_price_per_night": booking.pricing_rules.base_price_per_night,
        "weekly_discount_percent": booking.pricing_rules.weekly_discount_percent,
        "monthly_discount_percent": booking.pricing_rules.monthly_discount_percent,
        "guest_service_fee_rate": booking.fee_schedule.guest_service_fee_rate,
        "host_service_fee_rate": booking.fee_schedule.host_service_fee_rate,
        "tax_rate": booking.fee_schedule.tax_rate,
        "nights": booking.pricing.nights,
        "nightly_rate": booking.pricing.nightly_rate,
        "subtotal": booking.pricing.subtotal,
        "discount_percent": booking.pricing.discount_percent,
        "discount_amount": booking.pricing.discount_amount,
        "cleaning_fee": booking.pricing.cleaning_fee,
        "guest_service_fee": booking.pricing.guest_service_fee,
        "tax": booking.pricing.tax,
        "total": booking.pricing.total,
        "host_payout": booking.pricing.host_payout,
        "confirmed_at": booking.confirmed_at,
        "completed_at": booking.completed_at,
        "cancelled_at": record.cancelled_at if record else None,
        "cancelled_by": record.cancelled_by.value if record else "",
        "cancellation_reason": record.reason if record else "",
        "refund_percent": record.refund_percent if record else None,
        "refund_amount": record.refund_amount if record else None,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }


class DjangoBookingRepository(AbstractBookingRepository):
    """Booking store on the default Django database."""

    def get(self, booking_id: str) -> Optional[Booking]:
        from .models import Booking as BookingModel

        with _database_errors("get"):
            row = BookingModel.objects.filter(pk=booking_id).first()
        return booking_from_row(row) if row is not None else None

    def get_confirmed_bookings(self, property_id: str) -> list[Booking]:
        from .models import Booking as BookingModel

        with _database_errors("get_confirmed_bookings"):
            rows = list(
                BookingModel.objects.filter(
                    property_id=property_id,
                    status=BookingModel.Status.CONFIRMED,
                ).order_by("check_in")
            )
        return [booking_from_row(row) for row in rows]

    def get_blocked_dates(self, property_id: str) -> list[date]:
        from apps.properties.models import PropertyBlockedDate

        with _database_errors("get_blocked_dates"):
            return list(
                PropertyBlockedDate.objects.filter(property_id=property_id)
                .order_by("date")
                .values_list("date", flat=True)
            )

    def save(self, booking: Booking) -> None:
        from .models import Booking as BookingModel

        fields = booking_to_fields(booking)
        with _database_errors("save"):
            if booking.version == 0:
                BookingModel.objects.create(id=booking.id, version=1, **fields)
            else:
                updated = BookingModel.objects.filter(
                    pk=booking.id, version=booking.version
                ).update(version=F("version") + 1, **fields)
                if not updated:
                    raise StaleBooking(booking.id)
        booking.version += 1

    def run_transaction(self, property_id: str, fn: TransactionFn) -> Booking:
        from .models import BookingCalendar

        with _database_errors("run_transaction"), transaction.atomic():
            version = self._calendar_version(property_id)
            snapshot = CalendarSnapshot(
                property_id=property_id,
                version=version,
                confirmed_bookings=tuple(self.get_confirmed_bookings(property_id)),
                blocked_dates=frozenset(self.get_blocked_dates(property_id)),
            )

            booking = fn(snapshot)

            swapped = BookingCalendar.objects.filter(
                property_id=property_id, version=version
            ).update(version=F("version") + 1)
            if not swapped:
                raise CalendarConflict(property_id)

            self.save(booking)
        return booking

    def _calendar_version(self, property_id: str) -> int:
        from .models import BookingCalendar

        try:
            with transaction.atomic():
                calendar, _ = BookingCalendar.objects.get_or_create(property_id=property_id)
        except IntegrityError:
            # Another writer created the calendar row first
            raise CalendarConflict(property_id)
        return calendar.version

    def query(self, criteria: BookingFilter) -> list[Booking]:
        from .models import Booking as BookingModel

        condition = Q()
        if criteria.guest_id is not None:
            condition &= Q(guest_id=criteria.guest_id)
        if criteria.host_id is not None:
            condition &= Q(host_id=criteria.host_id)
        if criteria.property_id is not None:
            condition &= Q(property_id=criteria.property_id)
        if criteria.statuses:
            condition &= Q(status__in=[status.value for status in criteria.statuses])
        if criteria.check_out_on_or_before is not None:
            condition &= Q(check_out__lte=criteria.check_out_on_or_before)

        with _database_errors("query"):
            rows = list(BookingModel.objects.filter(condition).order_by("-created_at"))
        return [booking_from_row(row) for row in rows]

    def unit_of_work(self, bus: MessageBus | None = None) -> AbstractUnitOfWork:
        return DjangoUnitOfWork(bus)


# ============================================================================
# IN-PROCESS
# ============================================================================


class InMemoryBookingRepository(AbstractBookingRepository):
    """
    Process-local booking store

    Documents are deep-copied in and out, as a remote store would return
    fresh objects. The compare-and-swap runs under a lock; the callback of
    ``run_transaction`` runs outside it so concurrent writers really race.
    """

    def __init__(self, bookings: Iterable[Booking] = (), blocked_dates: dict[str, Iterable[date]] | None = None):
        self._lock = threading.RLock()
        self._bookings: dict[str, Booking] = {}
        self._calendar_versions: dict[str, int] = {}
        self._blocked: dict[str, set[date]] = {
            property_id: set(days) for property_id, days in (blocked_dates or {}).items()
        }
        for booking in bookings:
            self.save(booking)

    def block_dates(self, property_id: str, days: Iterable[date]) -> None:
        with self._lock:
            self._blocked.setdefault(property_id, set()).update(days)

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            stored = self._bookings.get(booking_id)
            return copy.deepcopy(stored) if stored is not None else None

    def get_confirmed_bookings(self, property_id: str) -> list[Booking]:
        with self._lock:
            confirmed = [
                copy.deepcopy(b) for b in self._bookings.values()
                if b.property_id == property_id and b.status == BookingStatus.CONFIRMED
            ]
        return sorted(confirmed, key=lambda b: b.check_in)

    def get_blocked_dates(self, property_id: str) -> list[date]:
        with self._lock:
            return sorted(self._blocked.get(property_id, ()))

    def save(self, booking: Booking) -> None:
        with self._lock:
            self._write(booking)

    def _write(self, booking: Booking) -> None:
        stored = self._bookings.get(booking.id)
        current_version = stored.version if stored is not None else 0
        if current_version != booking.version:
            raise StaleBooking(booking.id)
        booking.version = current_version + 1
        document = copy.deepcopy(booking)
        document.clear_events()
        self._bookings[booking.id] = document

    def _snapshot(self, property_id: str) -> CalendarSnapshot:
        with self._lock:
            return CalendarSnapshot(
                property_id=property_id,
                version=self._calendar_versions.get(property_id, 0),
                confirmed_bookings=tuple(self.get_confirmed_bookings(property_id)),
                blocked_dates=frozenset(self._blocked.get(property_id, ())),
            )

    def run_transaction(self, property_id: str, fn: TransactionFn) -> Booking:
        snapshot = self._snapshot(property_id)
        booking = fn(snapshot)
        with self._lock:
            if self._calendar_versions.get(property_id, 0) != snapshot.version:
                raise CalendarConflict(property_id)
            self._write(booking)
            self._calendar_versions[property_id] = snapshot.version + 1
        return booking

    def query(self, criteria: BookingFilter) -> list[Booking]:
        with self._lock:
            matches = [copy.deepcopy(b) for b in self._bookings.values() if criteria.matches(b)]
        return sorted(matches, key=lambda b: b.created_at, reverse=True)

    def unit_of_work(self, bus: MessageBus | None = None) -> AbstractUnitOfWork:
        return InMemoryUnitOfWork(bus)
