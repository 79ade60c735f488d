"""
Availability Index

The consistency check that keeps a property free of double bookings.
Every confirmation (instant book or host acceptance) is validated against
an index built from the same snapshot that the store then compare-and-swaps.

Inventory is removed by exactly two things:
1. Confirmed bookings
2. Dates the host blocked by hand

Pending requests are deliberately left out: several guests may hold
overlapping requests on a manually approved listing, and the first one
the host accepts wins.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from shared.domain.value_objects import DateRange

from .entities import Booking, BookingStatus


@dataclass(frozen=True)
class Allocation:
    """
    Allocation - a confirmed booking's hold on a date range

    Allocations of one property never overlap each other.
    """
    booking_id: str
    guest_id: str
    dates: DateRange


class DayState(Enum):
    AVAILABLE = 'available'
    BOOKED = 'booked'
    BLOCKED = 'blocked'


@dataclass(frozen=True)
class CalendarDay:
    day: date
    state: DayState
    booking_id: Optional[str] = None
    guest_id: Optional[str] = None


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicts: Tuple[DateRange, ...] = ()

    def __bool__(self):
        return self.available


@dataclass
class AvailabilityIndex:
    """
    Calendar of one property: confirmed allocations plus host blocks

    Usage:
        index = AvailabilityIndex.build(property_id, confirmed_bookings, blocked_dates)
        result = index.is_available(DateRange(check_in, check_out))
        if not result:
            raise DateUnavailable(stay, result.conflicts)
    """

    property_id: str
    allocations: List[Allocation] = field(default_factory=list)
    blocked_dates: frozenset = frozenset()

    @classmethod
    def build(
        cls,
        property_id: str,
        bookings: Iterable[Booking],
        blocked_dates: Iterable[date] = (),
        statuses: Iterable[BookingStatus] = (BookingStatus.CONFIRMED,),
    ) -> 'AvailabilityIndex':
        """
        Build the index from a property's bookings

        Bookings of other properties and bookings whose stored status is
        not in ``statuses`` are ignored. Availability checks keep the
        default; calendars also pass COMPLETED so finished stays stay booked.
        """
        statuses = frozenset(statuses)
        allocations = [
            Allocation(booking_id=b.id, guest_id=b.guest_id, dates=b.stay)
            for b in bookings
            if b.property_id == property_id and b.status in statuses
        ]
        allocations.sort(key=lambda a: (a.dates.start_date, a.dates.end_date))
        return cls(
            property_id=property_id,
            allocations=allocations,
            blocked_dates=frozenset(blocked_dates),
        )

    def conflicts_with(self, dates: DateRange, *, exclude_booking_id: str | None = None) -> List[DateRange]:
        """All occupied ranges that overlap ``dates``, in calendar order"""
        conflicts = [
            a.dates for a in self.allocations
            if a.booking_id != exclude_booking_id and a.dates.overlaps(dates)
        ]
        conflicts.extend(
            DateRange.single_day(day) for day in self.blocked_dates if dates.contains(day)
        )
        conflicts.sort(key=lambda r: (r.start_date, r.end_date))
        return conflicts

    def is_available(self, dates: DateRange, *, exclude_booking_id: str | None = None) -> AvailabilityResult:
        """
        Check whether ``dates`` can still be confirmed

        ``exclude_booking_id`` skips one booking's own allocation, for
        re-validating a booking that is already in the index.
        """
        conflicts = self.conflicts_with(dates, exclude_booking_id=exclude_booking_id)
        if conflicts:
            return AvailabilityResult(available=False, conflicts=tuple(conflicts))
        return AvailabilityResult(available=True)

    def allocation_on(self, day: date) -> Optional[Allocation]:
        return next((a for a in self.allocations if a.dates.contains(day)), None)

    def list_occupied(self, window: DateRange) -> List[CalendarDay]:
        """
        Tag every day of ``window`` for calendar rendering

        A host block wins over a booking on the same day; booked days carry
        the occupying booking and guest.
        """
        days = []
        for day in window.days():
            if day in self.blocked_dates:
                days.append(CalendarDay(day=day, state=DayState.BLOCKED))
                continue
            allocation = self.allocation_on(day)
            if allocation is not None:
                days.append(CalendarDay(
                    day=day,
                    state=DayState.BOOKED,
                    booking_id=allocation.booking_id,
                    guest_id=allocation.guest_id,
                ))
            else:
                days.append(CalendarDay(day=day, state=DayState.AVAILABLE))
        return days

    def list_month(self, year: int, month: int) -> List[CalendarDay]:
        return self.list_occupied(DateRange.for_month(year, month))

    @property
    def total_allocations(self) -> int:
        return len(self.allocations)

    def __str__(self):
        return f"AvailabilityIndex(property={self.property_id}, allocations={len(self.allocations)})"
