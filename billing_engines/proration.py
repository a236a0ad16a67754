"""
Proration Engine - Partial-month billing for day-range pauses.

Pure functions with no I/O.

When a monthly override pauses service for a range of days inside an
otherwise active month, the monthly rate is scaled by the share of
scheduled service days that remain:

    prorated = round_half_up(rate * active_days / scheduled_days, 0.01)

Scheduled days are the days of the month whose weekday is in the
facility's schedule (0 = Sunday .. 6 = Saturday).

Usage:
    from billing_engines.proration import count_scheduled_days, prorate_rate

    days = count_scheduled_days(2026, 3, (1, 3, 5), pause_start_day=10, pause_end_day=20)
    amount = prorate_rate(Decimal("1000.00"), days)
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from billing_kernel.logging_config import get_logger

logger = get_logger("engines.proration")

_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class ScheduledDays:
    """
    Service-day counts for one month.

    Attributes:
        scheduled: Days in the month whose weekday is scheduled
        active: Scheduled days outside the paused day range
    """

    scheduled: int
    active: int

    @property
    def paused(self) -> int:
        return self.scheduled - self.active

    @property
    def is_partial(self) -> bool:
        return self.scheduled > 0 and self.active < self.scheduled


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7


def count_scheduled_days(
    year: int,
    month: int,
    days_of_week: Iterable[int],
    pause_start_day: int,
    pause_end_day: int,
) -> ScheduledDays:
    """
    Count scheduled and active service days for a month.

    A pause range reaching past the end of the month is clipped to it.

    Args:
        year: Calendar year
        month: Calendar month, 1-12
        days_of_week: Scheduled weekdays, 0 = Sunday .. 6 = Saturday
        pause_start_day: First paused day of the month (1-31)
        pause_end_day: Last paused day of the month (1-31)

    Returns:
        ScheduledDays with scheduled and active counts
    """
    schedule = set(days_of_week)
    days_in_month = calendar.monthrange(year, month)[1]
    scheduled = 0
    paused = 0

    for day in range(1, days_in_month + 1):
        if sunday_based_weekday(date(year, month, day)) not in schedule:
            continue
        scheduled += 1
        if pause_start_day <= day <= pause_end_day:
            paused += 1

    return ScheduledDays(scheduled=scheduled, active=scheduled - paused)


def prorate_rate(rate: Decimal, days: ScheduledDays) -> Decimal:
    """
    Scale a monthly rate by the share of active service days.

    No scheduled days in the month bills nothing.
    """
    if days.scheduled == 0:
        logger.warning("proration_no_scheduled_days", extra={"rate": str(rate)})
        return Decimal("0.00")
    amount = (rate * Decimal(days.active) / Decimal(days.scheduled)).quantize(
        _TWO_PLACES, rounding=ROUND_HALF_UP
    )
    logger.debug("rate_prorated", extra={
        "rate": str(rate),
        "scheduled_days": days.scheduled,
        "active_days": days.active,
        "prorated_amount": str(amount),
    })
    return amount
