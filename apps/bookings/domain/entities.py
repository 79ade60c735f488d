"""
Booking Domain Entities

Core business entities for the booking domain:
- Booking: Main aggregate representing a reservation
- BookingStatus: FSM states for booking lifecycle
- PropertySnapshot: Read-only view of the listing a booking is made against
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional

from shared.domain.base import Aggregate, ValueObject
from shared.domain.value_objects import DateRange

from .cancellation import RefundDecision, RefundReason, full_refund
from .events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingDeclined,
    BookingRequested,
)
from .exceptions import IllegalTransition
from .pricing import FeeSchedule, PriceBreakdown, PricingRules, price_for_nights


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (host accepted)
    - PENDING -> CANCELLED (host declined, or guest/host cancelled)
    - CONFIRMED -> CANCELLED (guest or host cancelled)
    - CONFIRMED -> COMPLETED (check-out date has passed)

    CANCELLED and COMPLETED are terminal.
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


STATUS_LABELS: Dict[BookingStatus, str] = {
    BookingStatus.PENDING: 'Pending',
    BookingStatus.CONFIRMED: 'Confirmed',
    BookingStatus.CANCELLED: 'Cancelled',
    BookingStatus.COMPLETED: 'Completed',
}

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


class CancelledBy(Enum):
    GUEST = 'guest'
    HOST = 'host'


@dataclass(frozen=True)
class GuestCounts(ValueObject):
    """Party size; infants do not count towards the property's capacity"""
    adults: int = 1
    children: int = 0
    infants: int = 0

    @property
    def billable(self) -> int:
        return self.adults + self.children


@dataclass(frozen=True)
class PropertySnapshot(ValueObject):
    """
    Listing data the booking engine needs, as of the current request

    The engine never mutates it; the caller loads a fresh one per call.
    """
    id: str
    host_id: str
    max_guests: int
    minimum_stay: int
    pricing: PricingRules
    cancellation_policy_id: str
    instant_book: bool = False
    maximum_stay: Optional[int] = None
    blocked_dates: FrozenSet[date] = frozenset()


@dataclass(frozen=True)
class CancellationRecord(ValueObject):
    """Set once when a booking is cancelled or declined; never revised"""
    cancelled_at: datetime
    cancelled_by: CancelledBy
    refund_percent: int
    refund_amount: Decimal
    reason: str = ''


@dataclass(eq=False)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    Represents a guest's reservation of a property for specific dates.

    Key invariants:
    - Stay has at least one night and respects the property's stay limits
    - Status only moves along ALLOWED_TRANSITIONS
    - pricing is what price_for_nights() returns for the stored inputs
    - Cancellation details are written exactly once
    """

    property_id: str
    guest_id: str
    host_id: str
    stay: DateRange
    guests: GuestCounts
    pricing_rules: PricingRules
    fee_schedule: FeeSchedule
    pricing: PriceBreakdown
    cancellation_policy_id: str
    status: BookingStatus = BookingStatus.PENDING
    special_requests: str = ''

    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancellation: Optional[CancellationRecord] = None

    # Optimistic concurrency token of the stored document (0 = never saved)
    version: int = 0

    @classmethod
    def request(
        cls,
        prop: PropertySnapshot,
        guest_id: str,
        stay: DateRange,
        guests: GuestCounts,
        pricing: PriceBreakdown,
        fee_schedule: FeeSchedule,
        requested_at: datetime,
        special_requests: str = '',
    ) -> 'Booking':
        """
        Create a booking for ``prop``

        Instant-book listings produce a CONFIRMED booking directly,
        all others a PENDING request for the host.
        """
        booking = cls(
            property_id=prop.id,
            guest_id=guest_id,
            host_id=prop.host_id,
            stay=stay,
            guests=guests,
            pricing_rules=prop.pricing,
            fee_schedule=fee_schedule,
            pricing=pricing,
            cancellation_policy_id=prop.cancellation_policy_id,
            special_requests=special_requests,
            created_at=requested_at,
            updated_at=requested_at,
        )

        if prop.instant_book:
            booking.status = BookingStatus.CONFIRMED
            booking.confirmed_at = requested_at
            booking.add_event(BookingConfirmed(
                **booking._event_fields(requested_at),
                total=pricing.total,
                instant=True,
            ))
        else:
            booking.add_event(BookingRequested(
                **booking._event_fields(requested_at),
                total=pricing.total,
            ))
        return booking

    # ----- transitions -----

    def ensure_can_transition(self, target: BookingStatus, detail: str = ''):
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise IllegalTransition(self.id, self.status, target, detail)

    def _move_to(self, target: BookingStatus, at: datetime):
        self.ensure_can_transition(target)
        self.status = target
        self.updated_at = at

    def confirm(self, at: datetime):
        """
        Host accepts the request (PENDING -> CONFIRMED)

        Availability must be re-checked by the caller in the same
        atomic operation that persists this change.
        """
        self._move_to(BookingStatus.CONFIRMED, at)
        self.confirmed_at = at
        self.add_event(BookingConfirmed(
            **self._event_fields(at),
            total=self.pricing.total,
            instant=False,
        ))

    def decline(self, at: datetime, reason: str = ''):
        """
        Host declines the request (PENDING -> CANCELLED)

        Nothing was charged, so the guest is refunded in full.
        """
        if self.status != BookingStatus.PENDING:
            raise IllegalTransition(
                self.id, self.status, BookingStatus.CANCELLED,
                'only pending requests can be declined'
            )
        self._record_cancellation(
            at, CancelledBy.HOST, full_refund(self.pricing.total, RefundReason.DECLINED), reason
        )
        self.add_event(BookingDeclined(**self._event_fields(at)))

    def cancel(self, actor: CancelledBy, refund: RefundDecision, at: datetime, reason: str = ''):
        """Guest or host cancels (PENDING|CONFIRMED -> CANCELLED)"""
        previous = self.status
        self._record_cancellation(at, actor, refund, reason)
        self.add_event(BookingCancelled(
            **self._event_fields(at),
            cancelled_by=actor.value,
            refund_percent=refund.refund_percent,
            refund_amount=refund.refund_amount,
            previous_status=previous.value,
        ))

    def complete(self, at: datetime):
        """Stay is over (CONFIRMED -> COMPLETED); allowed from check-out on"""
        self.ensure_can_transition(BookingStatus.COMPLETED)
        if at < self.stay.end_instant:
            raise IllegalTransition(
                self.id, self.status, BookingStatus.COMPLETED,
                f'stay ends {self.stay.end_date.isoformat()}'
            )
        self._move_to(BookingStatus.COMPLETED, at)
        self.completed_at = at
        self.add_event(BookingCompleted(**self._event_fields(at)))

    def _record_cancellation(self, at: datetime, actor: CancelledBy, refund: RefundDecision, reason: str):
        if self.cancellation is not None:
            raise IllegalTransition(self.id, self.status, BookingStatus.CANCELLED, 'already cancelled')
        self._move_to(BookingStatus.CANCELLED, at)
        self.cancellation = CancellationRecord(
            cancelled_at=at,
            cancelled_by=actor,
            refund_percent=refund.refund_percent,
            refund_amount=refund.refund_amount,
            reason=reason,
        )

    def _event_fields(self, at: datetime) -> dict:
        return {
            'aggregate_id': self.id,
            'occurred_at': at,
            'booking_id': self.id,
            'property_id': self.property_id,
            'guest_id': self.guest_id,
            'host_id': self.host_id,
            'stay': self.stay,
        }

    # ----- queries -----

    def effective_status(self, now: datetime) -> BookingStatus:
        return effective_status(self, now)

    def reprice(self) -> PriceBreakdown:
        """Recompute the breakdown from the inputs stored on the booking"""
        return price_for_nights(self.pricing_rules, self.pricing.nights, self.fee_schedule)

    def pricing_is_consistent(self) -> bool:
        return self.pricing.nights == self.stay.duration() and self.reprice() == self.pricing

    @property
    def nights(self) -> int:
        return self.stay.duration()

    @property
    def check_in(self) -> date:
        return self.stay.start_date

    @property
    def check_out(self) -> date:
        return self.stay.end_date

    @property
    def cancelled_at(self) -> Optional[datetime]:
        return self.cancellation.cancelled_at if self.cancellation else None

    @property
    def cancelled_by(self) -> Optional[CancelledBy]:
        return self.cancellation.cancelled_by if self.cancellation else None

    @property
    def refund_percent(self) -> Optional[int]:
        return self.cancellation.refund_percent if self.cancellation else None

    @property
    def refund_amount(self) -> Optional[Decimal]:
        return self.cancellation.refund_amount if self.cancellation else None

    def __str__(self):
        return f"Booking {self.id} ({self.status.value})"

    def __repr__(self):
        return (
            f"Booking(id={self.id}, property_id={self.property_id}, "
            f"status={self.status.value}, stay={self.stay!r})"
        )


def effective_status(booking: Booking, now: datetime) -> BookingStatus:
    """
    Status of ``booking`` as every reader should report it at ``now``

    There is no scheduler flipping finished stays to COMPLETED, so a
    CONFIRMED booking whose check-out has passed counts as COMPLETED
    until BookingLifecycle persists the transition.
    """
    if booking.status == BookingStatus.CONFIRMED and now >= booking.stay.end_instant:
        return BookingStatus.COMPLETED
    return booking.status

