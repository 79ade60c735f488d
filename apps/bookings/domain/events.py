"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange


@dataclass(kw_only=True)
class BookingEvent(DomainEvent):
    booking_id: str
    property_id: str
    guest_id: str
    host_id: str
    stay: DateRange

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'booking_id': self.booking_id,
            'property_id': self.property_id,
            'guest_id': self.guest_id,
            'host_id': self.host_id,
            'check_in': self.stay.start_date.isoformat(),
            'check_out': self.stay.end_date.isoformat(),
        })
        return data


@dataclass(kw_only=True)
class BookingRequested(BookingEvent):
    """
    Event: A guest asked to book a property that needs host approval

    Triggers:
    - Notify the host about the pending request
    """
    total: Decimal

    name = 'booking_requested'

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['total'] = str(self.total)
        return data


@dataclass(kw_only=True)
class BookingConfirmed(BookingEvent):
    """
    Event: Booking confirmed (instant book or host acceptance)

    Triggers:
    - Notify the guest
    - Notify the host too when it happened without their approval
    """
    total: Decimal
    instant: bool = False

    name = 'booking_confirmed'

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'total': str(self.total), 'instant': self.instant})
        return data


@dataclass(kw_only=True)
class BookingDeclined(BookingEvent):
    """
    Event: Host declined a pending request (no charge, full refund)

    Triggers:
    - Notify the guest
    """

    name = 'booking_declined'


@dataclass(kw_only=True)
class BookingCancelled(BookingEvent):
    """
    Event: Booking was cancelled by the guest or the host

    Triggers:
    - Notify the other party
    - Release the dates in every calendar view
    """
    cancelled_by: str
    refund_percent: int
    refund_amount: Decimal
    previous_status: str

    name = 'booking_cancelled'

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'cancelled_by': self.cancelled_by,
            'refund_percent': self.refund_percent,
            'refund_amount': str(self.refund_amount),
            'previous_status': self.previous_status,
        })
        return data


@dataclass(kw_only=True)
class BookingCompleted(BookingEvent):
    """
    Event: Stay has ended (CONFIRMED -> COMPLETED)

    Triggers:
    - Ask the guest for a review
    """

    name = 'booking_completed'
