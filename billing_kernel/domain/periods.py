"""
Billing periods -- validated calendar months.

Responsibility:
    ``BillingPeriod`` is the (year, month) value object every resolver,
    builder and comparator works in.  It owns month arithmetic (previous
    month across the December/January boundary), month labels, and the
    type/range validation that must run before any repository lookup.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - InvalidBillingPeriodError for non-int year/month (bool included) or a
      month outside 1-12.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date

from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import InvalidBillingPeriodError

MONTH_LABELS = (
    "",
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

MIN_YEAR = 1
MAX_YEAR = 9999


@dataclass(frozen=True, order=True)
class BillingPeriod:
    """
    One calendar month.

    Ordering is chronological (year first, then month).
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        # bool is an int subclass; True/False are never a valid year or month
        if not isinstance(self.year, int) or isinstance(self.year, bool):
            raise InvalidBillingPeriodError(self.year, self.month, "year must be an integer")
        if not isinstance(self.month, int) or isinstance(self.month, bool):
            raise InvalidBillingPeriodError(self.year, self.month, "month must be an integer")
        if not 1 <= self.month <= 12:
            raise InvalidBillingPeriodError(
                self.year, self.month, "month must be between 1 and 12"
            )
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidBillingPeriodError(
                self.year, self.month, f"year must be between {MIN_YEAR} and {MAX_YEAR}"
            )

    @classmethod
    def of(cls, year: int, month: int) -> BillingPeriod:
        return cls(year=year, month=month)

    @classmethod
    def containing(cls, day: date) -> BillingPeriod:
        """The period whose month contains ``day``."""
        return cls(year=day.year, month=day.month)

    @classmethod
    def current(cls, clock: Clock) -> BillingPeriod:
        """The period containing the clock's current UTC date."""
        now = clock.now_utc()
        return cls(year=now.year, month=now.month)

    def previous(self) -> BillingPeriod:
        """
        The month before this one.

        Raises:
            InvalidBillingPeriodError: For the first supported month, which
                has no predecessor.
        """
        if (self.year, self.month) == (MIN_YEAR, 1):
            raise InvalidBillingPeriodError(
                self.year, self.month, "no billing period precedes the first supported month"
            )
        if self.month == 1:
            return BillingPeriod(self.year - 1, 12)
        return BillingPeriod(self.year, self.month - 1)

    def next(self) -> BillingPeriod:
        if self.month == 12:
            return BillingPeriod(self.year + 1, 1)
        return BillingPeriod(self.year, self.month + 1)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def label(self) -> str:
        """Month name, e.g. ``"March"``."""
        return MONTH_LABELS[self.month]

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
