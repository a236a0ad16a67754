"""
Facility Billing Domain Records.

Responsibility:
    Frozen dataclass DTOs representing the nouns of facility billing: the
    client, its locations, the facility contracts serviced at those
    locations, and the override layers (seasonal rules, monthly overrides)
    and ad-hoc charges attached to them.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Engines consume these records;
    the ORM layer in ``billing_modules.facilities.orm`` converts to and from
    them.

Invariants:
    - All models are ``frozen=True`` (immutable after construction).
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
    - CLOSED is terminal for a facility profile (``transition_to``).

Failure modes:
    - ValueError on construction with negative rates/frequencies, weekday
      numbers outside 0-6, month numbers outside 1-12, or a pause window
      that ends before it starts.
    - FacilityClosedError when a CLOSED facility is asked to change status.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.exceptions import FacilityClosedError


class FacilityStatus(str, Enum):
    """Lifecycle status stored on a facility profile."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    SEASONAL_PAUSED = "SEASONAL_PAUSED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    CLOSED = "CLOSED"


class EffectiveStatus(str, Enum):
    """Status actually in force for one facility-month."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    SEASONAL_PAUSED = "SEASONAL_PAUSED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PENDING = "PENDING"  # before the go-live month
    CLOSED = "CLOSED"

    @classmethod
    def from_facility_status(cls, status: FacilityStatus) -> EffectiveStatus:
        return cls(status.value)


class OverrideStatus(str, Enum):
    """Status a monthly override may force."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


class TaxBehavior(str, Enum):
    """How a line decides whether the client's tax rate applies."""

    INHERIT_CLIENT = "INHERIT_CLIENT"
    TAXABLE = "TAXABLE"
    EXEMPT = "EXEMPT"
    PRE_TAX = "PRE_TAX"  # rate excludes tax; taxed like INHERIT_CLIENT
    TAX_INCLUDED = "TAX_INCLUDED"  # rate already contains tax


class RateType(str, Enum):
    """How the recurring charge is priced."""

    FLAT_MONTHLY = "FLAT_MONTHLY"
    DERIVED = "DERIVED"


class BillingDisplayMode(str, Enum):
    PRE_TAX_ONLY = "PRE_TAX_ONLY"
    WITH_TAX = "WITH_TAX"


class PaymentTerms(str, Enum):
    NET_15 = "NET_15"
    NET_30 = "NET_30"
    DUE_ON_RECEIPT = "DUE_ON_RECEIPT"


class ServiceItemStatus(str, Enum):
    """Lifecycle of an ad-hoc service charge."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _validate_months(name: str, months: tuple[int, ...]) -> None:
    for m in months:
        if not 1 <= m <= 12:
            raise ValueError(f"{name} contains invalid month {m}")


def _validate_days_of_week(name: str, days: tuple[int, ...]) -> None:
    for d in days:
        if not 0 <= d <= 6:
            raise ValueError(f"{name} contains invalid day of week {d}")


@dataclass(frozen=True)
class Client:
    """A tenant's customer.  Tax identity is fixed for a resolution run."""
    id: UUID
    company_id: UUID
    name: str
    tax_rate: Decimal = Decimal("0")
    tax_exempt: bool = False
    billing_display_mode: BillingDisplayMode = BillingDisplayMode.PRE_TAX_ONLY
    payment_terms: PaymentTerms = PaymentTerms.NET_30

    def __post_init__(self) -> None:
        if self.tax_rate < 0:
            raise ValueError("tax_rate must be non-negative")


@dataclass(frozen=True)
class Location:
    """A physical site belonging to a client."""
    id: UUID
    client_id: UUID
    name: str
    address: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class FacilityProfile:
    """
    The contract for servicing one location.

    ``pause_start_date``/``pause_end_date`` describe an explicit pause
    window, independent of ``status``.  An open ``pause_end_date`` means
    the pause has no scheduled end.
    """
    id: UUID
    client_id: UUID
    location_id: UUID
    default_monthly_rate: Decimal
    status: FacilityStatus = FacilityStatus.ACTIVE
    category: str | None = None
    rate_type: RateType = RateType.FLAT_MONTHLY
    tax_behavior: TaxBehavior = TaxBehavior.INHERIT_CLIENT
    go_live_date: date | None = None
    pause_start_date: date | None = None
    pause_end_date: date | None = None
    seasonal_rules_enabled: bool = False
    normal_days_of_week: tuple[int, ...] = ()
    normal_frequency_per_week: int = 0
    sort_order: int = 0
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.default_monthly_rate < 0:
            raise ValueError("default_monthly_rate must be non-negative")
        if self.normal_frequency_per_week < 0:
            raise ValueError("normal_frequency_per_week must be non-negative")
        _validate_days_of_week("normal_days_of_week", self.normal_days_of_week)
        if (
            self.pause_start_date is not None
            and self.pause_end_date is not None
            and self.pause_end_date < self.pause_start_date
        ):
            raise ValueError("pause_end_date must not be before pause_start_date")

    @property
    def is_closed(self) -> bool:
        return self.status == FacilityStatus.CLOSED

    def transition_to(self, new_status: FacilityStatus) -> FacilityProfile:
        """Return a copy in ``new_status``; a CLOSED profile may not leave CLOSED."""
        if self.is_closed and new_status != FacilityStatus.CLOSED:
            raise FacilityClosedError(str(self.id), new_status.value)
        return replace(self, status=new_status)


@dataclass(frozen=True)
class SeasonalRule:
    """
    A recurring, month-of-year override.

    A month is paused by the rule when it appears in ``paused_months``, or
    when ``active_months`` is non-empty and does not contain it.  Optional
    year bounds limit the years the rule applies to.
    """
    id: UUID
    facility_profile_id: UUID
    is_active: bool = True
    active_months: tuple[int, ...] = ()
    paused_months: tuple[int, ...] = ()
    effective_year_start: int | None = None
    effective_year_end: int | None = None
    override_rate: Decimal | None = None
    override_frequency: int | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        _validate_months("active_months", self.active_months)
        _validate_months("paused_months", self.paused_months)
        if self.override_rate is not None and self.override_rate < 0:
            raise ValueError("override_rate must be non-negative")
        if self.override_frequency is not None and self.override_frequency < 0:
            raise ValueError("override_frequency must be non-negative")

    def applies_to_year(self, year: int) -> bool:
        if self.effective_year_start is not None and year < self.effective_year_start:
            return False
        if self.effective_year_end is not None and year > self.effective_year_end:
            return False
        return True

    def pauses_month(self, month: int) -> bool:
        if self.active_months and month not in self.active_months:
            return True
        return month in self.paused_months

    def matches_month(self, month: int) -> bool:
        """True if the rule expresses any opinion about ``month``."""
        return month in self.active_months or self.pauses_month(month)


@dataclass(frozen=True)
class MonthlyOverride:
    """
    A one-off override for a single (facility, year, month).

    ``pause_start_day``/``pause_end_day`` pause service for a day range
    inside the month; an otherwise active facility is then pro-rated.
    """
    id: UUID
    facility_profile_id: UUID
    year: int
    month: int
    override_status: OverrideStatus | None = None
    override_rate: Decimal | None = None
    override_frequency: int | None = None
    override_days_of_week: tuple[int, ...] = ()
    pause_start_day: int | None = None
    pause_end_day: int | None = None
    override_notes: str | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")
        if self.override_rate is not None and self.override_rate < 0:
            raise ValueError("override_rate must be non-negative")
        if self.override_frequency is not None and self.override_frequency < 0:
            raise ValueError("override_frequency must be non-negative")
        _validate_days_of_week("override_days_of_week", self.override_days_of_week)
        if (self.pause_start_day is None) != (self.pause_end_day is None):
            raise ValueError("pause_start_day and pause_end_day must be set together")
        if self.pause_start_day is not None:
            if not 1 <= self.pause_start_day <= self.pause_end_day <= 31:
                raise ValueError("pause day range must satisfy 1 <= start <= end <= 31")

    @property
    def has_day_range_pause(self) -> bool:
        return self.pause_start_day is not None and self.pause_end_day is not None


@dataclass(frozen=True)
class ServiceLineItem:
    """An ad-hoc charge for one (year, month), optionally tied to a facility."""
    id: UUID
    client_id: UUID
    year: int
    month: int
    description: str
    unit_rate: Decimal
    quantity: Decimal = Decimal("1")
    facility_profile_id: UUID | None = None
    tax_behavior: TaxBehavior = TaxBehavior.INHERIT_CLIENT
    status: ServiceItemStatus = ServiceItemStatus.PENDING
    performed_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")
        if self.quantity < 0:
            raise ValueError("quantity must be non-negative")
        if self.unit_rate < 0:
            raise ValueError("unit_rate must be non-negative")
