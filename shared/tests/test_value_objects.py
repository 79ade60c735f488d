"""Tests for the shared value objects."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from django.test import SimpleTestCase

from shared.domain.value_objects import DateRange, InvalidRange, quantize_money


class DateRangeTests(SimpleTestCase):
    def test_duration_counts_nights(self) -> None:
        self.assertEqual(DateRange(date(2025, 7, 10), date(2025, 7, 15)).duration(), 5)

    def test_empty_or_reversed_range_is_rejected(self) -> None:
        with self.assertRaises(InvalidRange):
            DateRange(date(2025, 7, 10), date(2025, 7, 10))
        with self.assertRaises(InvalidRange):
            DateRange(date(2025, 7, 11), date(2025, 7, 10))

    def test_datetimes_are_rejected(self) -> None:
        with self.assertRaises(InvalidRange):
            DateRange(datetime(2025, 7, 10, tzinfo=timezone.utc), date(2025, 7, 12))

    def test_adjacent_ranges_do_not_overlap(self) -> None:
        first = DateRange(date(2025, 7, 10), date(2025, 7, 15))
        second = DateRange(date(2025, 7, 15), date(2025, 7, 18))

        self.assertFalse(first.overlaps(second))
        self.assertFalse(second.overlaps(first))

    def test_overlap_is_symmetric(self) -> None:
        first = DateRange(date(2025, 7, 10), date(2025, 7, 15))
        second = DateRange(date(2025, 7, 14), date(2025, 7, 18))

        self.assertTrue(first.overlaps(second))
        self.assertTrue(second.overlaps(first))

    def test_contains_is_half_open(self) -> None:
        dates = DateRange(date(2025, 7, 10), date(2025, 7, 12))

        self.assertTrue(dates.contains(date(2025, 7, 10)))
        self.assertTrue(dates.contains(date(2025, 7, 11)))
        self.assertFalse(dates.contains(date(2025, 7, 12)))

    def test_for_month_covers_whole_month(self) -> None:
        february = DateRange.for_month(2024, 2)

        self.assertEqual(february.start_date, date(2024, 2, 1))
        self.assertEqual(february.end_date, date(2024, 3, 1))
        self.assertEqual(len(list(february.days())), 29)

    def test_instants_are_utc_midnight(self) -> None:
        dates = DateRange(date(2025, 7, 10), date(2025, 7, 12))

        self.assertEqual(dates.start_instant, datetime(2025, 7, 10, tzinfo=timezone.utc))
        self.assertEqual(dates.end_instant, datetime(2025, 7, 12, tzinfo=timezone.utc))

    def test_str(self) -> None:
        self.assertEqual(str(DateRange(date(2025, 7, 10), date(2025, 7, 12))), "2025-07-10 - 2025-07-12")


class QuantizeMoneyTests(SimpleTestCase):
    def test_rounds_half_to_even(self) -> None:
        self.assertEqual(quantize_money(Decimal("0.125")), Decimal("0.12"))
        self.assertEqual(quantize_money(Decimal("0.135")), Decimal("0.14"))

    def test_accepts_numbers(self) -> None:
        self.assertEqual(quantize_money(5), Decimal("5.00"))
