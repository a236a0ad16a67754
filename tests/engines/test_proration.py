"""
Tests for day-range pause proration.

March 2026 starts on a Sunday.  Mon/Wed/Fri (1, 3, 5) gives 13 scheduled
days: Mondays 2, 9, 16, 23, 30; Wednesdays 4, 11, 18, 25; Fridays 6, 13,
20, 27.
"""

from datetime import date
from decimal import Decimal

from billing_engines.proration import (
    ScheduledDays,
    count_scheduled_days,
    prorate_rate,
    sunday_based_weekday,
)


class TestWeekdayConvention:

    def test_sunday_is_zero(self):
        assert sunday_based_weekday(date(2026, 3, 1)) == 0

    def test_saturday_is_six(self):
        assert sunday_based_weekday(date(2026, 3, 7)) == 6


class TestCountScheduledDays:

    def test_no_pause_overlap(self):
        days = count_scheduled_days(2026, 3, (1, 3, 5), pause_start_day=31, pause_end_day=31)
        assert days == ScheduledDays(scheduled=13, active=13)
        assert not days.is_partial

    def test_mid_month_pause(self):
        # 9..15 pauses Mon 9, Wed 11, Fri 13
        days = count_scheduled_days(2026, 3, (1, 3, 5), pause_start_day=9, pause_end_day=15)
        assert days.scheduled == 13
        assert days.active == 10
        assert days.paused == 3
        assert days.is_partial

    def test_pause_past_month_end_is_clipped(self):
        days = count_scheduled_days(2026, 2, (1,), pause_start_day=20, pause_end_day=31)
        # February 2026 Mondays: 2, 9, 16, 23
        assert days == ScheduledDays(scheduled=4, active=3)

    def test_empty_schedule(self):
        days = count_scheduled_days(2026, 3, (), pause_start_day=1, pause_end_day=10)
        assert days == ScheduledDays(scheduled=0, active=0)


class TestProrateRate:

    def test_proportional_amount(self):
        amount = prorate_rate(Decimal("1300.00"), ScheduledDays(scheduled=13, active=10))
        assert amount == Decimal("1000.00")

    def test_rounds_half_up_to_cents(self):
        amount = prorate_rate(Decimal("1000.00"), ScheduledDays(scheduled=3, active=2))
        assert amount == Decimal("666.67")

    def test_whole_month_paused(self):
        assert prorate_rate(Decimal("1000.00"), ScheduledDays(scheduled=13, active=0)) == Decimal("0.00")

    def test_no_scheduled_days_bills_nothing(self):
        assert prorate_rate(Decimal("1000.00"), ScheduledDays(scheduled=0, active=0)) == Decimal("0.00")
