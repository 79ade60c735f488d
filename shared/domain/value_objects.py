"""
Common Value Objects

Value objects used across multiple domains:
- DateRange: Represents a half-open range of days (check-in to check-out)
- quantize_money: Rounds an amount to the currency's minor unit
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterator

from shared.domain.base import ValueObject

MINOR_UNIT = Decimal('0.01')


class InvalidRange(ValueError):
    """Raised when a date range does not cover at least one night"""


def quantize_money(amount) -> Decimal:
    """
    Round an amount to the minor currency unit (cents)

    Uses banker's rounding (round-half-to-even) so that repeated
    rounding of many bookings does not drift in one direction.
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(MINOR_UNIT, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date (inclusive) to end_date (exclusive).
    Used for booking periods, availability checks, calendar windows, etc.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if isinstance(self.start_date, datetime) or isinstance(self.end_date, datetime):
            raise InvalidRange("DateRange works with whole days, not datetimes")
        if self.start_date >= self.end_date:
            raise InvalidRange(
                f"Start date ({self.start_date}) must be before end date ({self.end_date})"
            )

    @classmethod
    def single_day(cls, day: date) -> 'DateRange':
        """The one-night range covering ``day``"""
        return cls(day, day + timedelta(days=1))

    @classmethod
    def for_month(cls, year: int, month: int) -> 'DateRange':
        """The range covering every day of a calendar month"""
        last_day = calendar.monthrange(year, month)[1]
        start = date(year, month, 1)
        return cls(start, start + timedelta(days=last_day))

    def duration(self) -> int:
        """
        Number of nights in this range

        Always at least 1 because construction rejects empty ranges.
        """
        nights = (self.end_date - self.start_date).days
        if nights < 1:
            raise InvalidRange(f"Range {self!r} has no nights")
        return nights

    def overlaps(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        Two ranges overlap if they share any night.
        Note: end_date is exclusive, so a check-out and a check-in
        on the same day do not conflict.

        Examples:
            - DateRange(25, 28) overlaps with DateRange(27, 30) -> True
            - DateRange(25, 28) overlaps with DateRange(28, 31) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")

        return (self.start_date < other.end_date and
                other.start_date < self.end_date)

    def contains(self, check_date: date) -> bool:
        """
        Check if a date is within this range

        Note: start_date is inclusive, end_date is exclusive
        """
        return self.start_date <= check_date < self.end_date

    def days(self) -> Iterator[date]:
        """Iterate over each night's date in the range"""
        current = self.start_date
        while current < self.end_date:
            yield current
            current += timedelta(days=1)

    @property
    def start_instant(self) -> datetime:
        """Midnight UTC at the start of the first day"""
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)

    @property
    def end_instant(self) -> datetime:
        """Midnight UTC at the start of the check-out day"""
        return datetime.combine(self.end_date, time.min, tzinfo=timezone.utc)

    def __len__(self) -> int:
        return self.duration()

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
