"""
Stay request validation

Checks a requested stay against the listing's limits before anything is
priced or written. Each failure names the rule it broke so callers can
show a precise message.
"""

from shared.domain.value_objects import DateRange

from .entities import GuestCounts, PropertySnapshot
from .exceptions import InvalidStayRequest

MINIMUM_STAY = 'minimum_stay'
MAXIMUM_STAY = 'maximum_stay'
MAX_GUESTS = 'max_guests'
MIN_ADULTS = 'min_adults'
NEGATIVE_GUESTS = 'negative_guests'


def validate_stay_request(prop: PropertySnapshot, stay: DateRange, guests: GuestCounts) -> int:
    """
    Validate stay length and party size for ``prop``

    Returns the number of nights.

    Raises:
        InvalidStayRequest: With ``rule`` set to the violated rule
    """
    if min(guests.adults, guests.children, guests.infants) < 0:
        raise InvalidStayRequest(NEGATIVE_GUESTS, "Guest counts cannot be negative")

    if guests.adults < 1:
        raise InvalidStayRequest(MIN_ADULTS, "At least one adult is required")

    if guests.billable > prop.max_guests:
        raise InvalidStayRequest(
            MAX_GUESTS,
            f"Maximum {prop.max_guests} guests allowed, not including infants "
            f"(requested {guests.billable})"
        )

    nights = stay.duration()

    if nights < prop.minimum_stay:
        raise InvalidStayRequest(
            MINIMUM_STAY, f"Minimum stay is {prop.minimum_stay} nights (requested {nights})"
        )

    if prop.maximum_stay is not None and nights > prop.maximum_stay:
        raise InvalidStayRequest(
            MAXIMUM_STAY, f"Maximum stay is {prop.maximum_stay} nights (requested {nights})"
        )

    return nights
