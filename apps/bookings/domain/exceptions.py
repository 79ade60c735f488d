"""
Booking Domain Errors

Every failure of the booking engine is one of these types. Validation errors
are raised before any write; only PersistenceError comes from the store.
"""

from typing import Iterable, Tuple

from shared.domain.value_objects import DateRange


class BookingError(Exception):
    """Base class for booking engine errors"""


class InvalidStayRequest(BookingError):
    """Guest count or stay length violates the property's rules"""

    def __init__(self, rule: str, message: str):
        super().__init__(message)
        self.rule = rule


class DateUnavailable(BookingError):
    """Requested dates collide with confirmed bookings or host blocks"""

    def __init__(self, stay: DateRange, conflicts: Iterable[DateRange] = ()):
        self.stay = stay
        self.conflicts: Tuple[DateRange, ...] = tuple(conflicts)
        if self.conflicts:
            listed = ', '.join(str(c) for c in self.conflicts)
            message = f"Dates {stay} are not available (conflicts: {listed})"
        else:
            message = f"Dates {stay} are not available"
        super().__init__(message)


class InvalidPricingInput(BookingError):
    """Property pricing configuration or fee schedule is malformed"""


class IllegalTransition(BookingError):
    """Status change not allowed by the booking state machine"""

    def __init__(self, booking_id: str, current, target, detail: str = ''):
        self.booking_id = booking_id
        self.current = current
        self.target = target
        message = (
            f"Booking {booking_id} cannot move from "
            f"{getattr(current, 'value', current)} to {getattr(target, 'value', target)}"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidCancellation(BookingError):
    """Cancellation requested for a stay that has already concluded"""


class UnknownCancellationPolicy(BookingError, LookupError):
    def __init__(self, policy_id: str):
        super().__init__(f"Unknown cancellation policy: {policy_id!r}")
        self.policy_id = policy_id


class BookingNotFound(BookingError, LookupError):
    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class PersistenceError(BookingError):
    """The persistence collaborator failed; the caller decides whether to retry"""


class CalendarConflict(PersistenceError):
    """Another writer changed the property's confirmed set since it was read"""

    def __init__(self, property_id: str):
        super().__init__(f"Calendar of property {property_id} changed concurrently")
        self.property_id = property_id


class StaleBooking(PersistenceError):
    """The booking document changed since it was read"""

    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} was modified concurrently")
        self.booking_id = booking_id
