"""
Booking Lifecycle

Use cases of the booking engine. Every write goes through here:

- create: validate, price, and store a PENDING request or, on instant-book
  listings, a CONFIRMED booking
- accept / decline: host decision on a pending request
- cancel: guest or host cancellation with a refund decision
- complete / complete_due: persist lazy completion of finished stays

Confirmations (instant create and accept) are validated against the
calendar snapshot inside ``repository.run_transaction``; losing the
compare-and-swap to a concurrent writer is retried with fresh reads, and
``DateUnavailable`` is raised once the retries are used up.

Events collected from the aggregate are published through the unit of
work after the write commits; notification failures never undo a
transition.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional

from django.utils import timezone  # type: ignore

from apps.bookings import conf
from apps.bookings.domain.availability import AvailabilityIndex
from apps.bookings.domain.cancellation import compute_refund, get_policy
from apps.bookings.domain.entities import (
    Booking,
    BookingStatus,
    CancelledBy,
    GuestCounts,
    PropertySnapshot,
)
from apps.bookings.domain.exceptions import (
    CalendarConflict,
    DateUnavailable,
    IllegalTransition,
    StaleBooking,
)
from apps.bookings.domain.pricing import FeeSchedule, PriceBreakdown, calculate_price
from apps.bookings.domain.stay_rules import validate_stay_request
from apps.bookings.repositories import AbstractBookingRepository, BookingFilter, CalendarSnapshot
from shared.application.message_bus import MessageBus
from shared.domain.value_objects import DateRange
from shared.infrastructure.timestamps import normalize_timestamp

logger = logging.getLogger(__name__)


class BookingLifecycle:
    """
    Booking state machine with its side effects

    Usage:
        lifecycle = BookingLifecycle(DjangoBookingRepository())
        booking = lifecycle.create(prop.to_snapshot(), guest_id, DateRange(check_in, check_out))
        lifecycle.accept(booking.id)
    """

    def __init__(
        self,
        repository: AbstractBookingRepository,
        message_bus: MessageBus | None = None,
        fee_schedule: FeeSchedule | None = None,
        clock: Callable[[], datetime] = timezone.now,
        grace_period: timedelta | None = None,
        conflict_retries: int | None = None,
    ):
        self.repository = repository
        self.message_bus = message_bus
        self.fee_schedule = fee_schedule or conf.fee_schedule_from_settings()
        self.clock = clock
        self.grace_period = grace_period if grace_period is not None else conf.grace_period()
        self.conflict_retries = (
            conflict_retries if conflict_retries is not None else conf.conflict_retries()
        )

    def now(self) -> datetime:
        return normalize_timestamp(self.clock())

    # ===== Requests =====

    def quote(
        self,
        prop: PropertySnapshot,
        stay: DateRange,
        guests: GuestCounts | None = None,
    ) -> PriceBreakdown:
        """Validate the stay and price it without storing anything"""
        validate_stay_request(prop, stay, guests or GuestCounts())
        return calculate_price(prop.pricing, stay, self.fee_schedule)

    def create(
        self,
        prop: PropertySnapshot,
        guest_id: str,
        stay: DateRange,
        guests: GuestCounts | None = None,
        special_requests: str = '',
    ) -> Booking:
        """
        Request a stay at ``prop``

        Raises:
            InvalidStayRequest: Stay length or party size breaks a listing rule
            DateUnavailable: Dates collide with confirmed bookings or blocks
            PersistenceError: Store failed
        """
        guests = guests or GuestCounts()
        validate_stay_request(prop, stay, guests)
        pricing = calculate_price(prop.pricing, stay, self.fee_schedule)

        logger.info(
            f"Creating booking for property {prop.id}, guest {guest_id}, dates {stay} "
            f"({'instant' if prop.instant_book else 'request'})"
        )

        def build() -> Booking:
            return Booking.request(
                prop,
                guest_id=guest_id,
                stay=stay,
                guests=guests,
                pricing=pricing,
                fee_schedule=self.fee_schedule,
                requested_at=self.now(),
                special_requests=special_requests,
            )

        if prop.instant_book:
            booking = self._confirm_atomically(
                prop.id, stay, lambda snapshot: build(), extra_blocked=prop.blocked_dates
            )
        else:
            # Pending requests do not take inventory, so no compare-and-swap
            index = AvailabilityIndex.build(
                prop.id,
                self.repository.get_confirmed_bookings(prop.id),
                set(self.repository.get_blocked_dates(prop.id)) | set(prop.blocked_dates),
            )
            result = index.is_available(stay)
            if not result:
                raise DateUnavailable(stay, result.conflicts)

            booking = build()
            with self.repository.unit_of_work(self.message_bus) as uow:
                self.repository.save(booking)
                uow.collect_events(booking)

        logger.info(f"Booking {booking.id} created with status {booking.status.value}")
        return booking

    # ===== Host decisions =====

    def accept(self, booking_id: str) -> Booking:
        """
        Confirm a pending request after re-checking the calendar

        Raises:
            BookingNotFound: Unknown booking
            IllegalTransition: Booking is not pending
            DateUnavailable: Dates were taken meanwhile; booking stays pending
        """
        booking = self.repository.require(booking_id)
        booking.ensure_can_transition(BookingStatus.CONFIRMED)

        def confirm(snapshot: CalendarSnapshot) -> Booking:
            current = self.repository.require(booking_id)
            current.confirm(self.now())
            return current

        accepted = self._confirm_atomically(
            booking.property_id, booking.stay, confirm, exclude_booking_id=booking_id
        )
        logger.info(f"Booking {booking_id} accepted by host {accepted.host_id}")
        return accepted

    def decline(self, booking_id: str, reason: str = '') -> Booking:
        """Host turns down a pending request; the guest gets a full refund"""
        with self.repository.unit_of_work(self.message_bus) as uow:
            booking = self.repository.require(booking_id)
            booking.decline(self.now(), reason)
            self.repository.save(booking)
            uow.collect_events(booking)

        logger.info(f"Booking {booking_id} declined by host {booking.host_id}")
        return booking

    # ===== Cancellation =====

    def cancel(self, booking_id: str, actor: CancelledBy | str, reason: str = '') -> Booking:
        """
        Cancel a pending or confirmed booking

        The refund is decided once, from the policy stored on the booking.

        Raises:
            IllegalTransition: Booking is already cancelled or completed,
                including a confirmed stay whose check-out has passed
            InvalidCancellation: Pending request whose stay has already ended
            UnknownCancellationPolicy: Stored policy is not in the catalog
        """
        actor = CancelledBy(actor)
        with self.repository.unit_of_work(self.message_bus) as uow:
            booking = self.repository.require(booking_id)
            booking.ensure_can_transition(BookingStatus.CANCELLED)

            cancelled_at = self.now()
            if booking.effective_status(cancelled_at) == BookingStatus.COMPLETED:
                raise IllegalTransition(
                    booking_id, BookingStatus.COMPLETED, BookingStatus.CANCELLED, 'stay has ended'
                )
            refund = compute_refund(
                get_policy(booking.cancellation_policy_id),
                created_at=booking.created_at,
                check_in=booking.stay.start_instant,
                cancelled_at=cancelled_at,
                total=booking.pricing.total,
                check_out=booking.stay.end_instant,
                grace_period=self.grace_period,
            )
            booking.cancel(actor, refund, cancelled_at, reason)
            self.repository.save(booking)
            uow.collect_events(booking)

        logger.info(
            f"Booking {booking_id} cancelled by {actor.value}: "
            f"{refund.refund_percent}% refund ({refund.refund_amount}, {refund.reason.value})"
        )
        return booking

    # ===== Completion =====

    def complete(self, booking_id: str) -> Booking:
        """Persist CONFIRMED -> COMPLETED for a stay whose check-out has passed"""
        with self.repository.unit_of_work(self.message_bus) as uow:
            booking = self.repository.require(booking_id)
            booking.complete(self.now())
            self.repository.save(booking)
            uow.collect_events(booking)

        logger.info(f"Booking {booking_id} completed")
        return booking

    def complete_due(self, host_id: str | None = None, property_id: str | None = None) -> List[Booking]:
        """
        Persist completion of every confirmed stay that has ended

        Bookings changed concurrently are skipped; the next call picks them up.
        """
        now = self.now()
        due = self.repository.query(BookingFilter(
            host_id=host_id,
            property_id=property_id,
            statuses=(BookingStatus.CONFIRMED,),
            check_out_on_or_before=now.date(),
        ))

        completed = []
        for booking in due:
            if booking.effective_status(now) != BookingStatus.COMPLETED:
                continue
            try:
                with self.repository.unit_of_work(self.message_bus) as uow:
                    booking.complete(now)
                    self.repository.save(booking)
                    uow.collect_events(booking)
            except StaleBooking:
                logger.warning(f"Booking {booking.id} changed while completing, skipped")
                continue
            completed.append(booking)

        if completed:
            logger.info(f"Completed {len(completed)} finished stays")
        return completed

    # ===== Reads =====

    def get(self, booking_id: str) -> Booking:
        return self.repository.require(booking_id)

    # ===== Internals =====

    def _confirm_atomically(
        self,
        property_id: str,
        stay: DateRange,
        prepare: Callable[[CalendarSnapshot], Booking],
        *,
        exclude_booking_id: Optional[str] = None,
        extra_blocked: Iterable[date] = (),
    ) -> Booking:
        """
        Validate ``stay`` against a calendar snapshot and store the booking
        that ``prepare`` returns, in one compare-and-swap
        """
        extra_blocked = frozenset(extra_blocked)

        def transaction(snapshot: CalendarSnapshot) -> Booking:
            index = AvailabilityIndex.build(
                property_id,
                snapshot.confirmed_bookings,
                snapshot.blocked_dates | extra_blocked,
            )
            result = index.is_available(stay, exclude_booking_id=exclude_booking_id)
            if not result:
                raise DateUnavailable(stay, result.conflicts)
            return prepare(snapshot)

        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                with self.repository.unit_of_work(self.message_bus) as uow:
                    booking = self.repository.run_transaction(property_id, transaction)
                    uow.collect_events(booking)
                return booking
            except CalendarConflict:
                logger.warning(
                    f"Calendar of property {property_id} changed during confirmation "
                    f"of {stay} (attempt {attempt}/{attempts})"
                )

        raise DateUnavailable(stay)
