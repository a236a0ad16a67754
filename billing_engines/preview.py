"""
Billing preview value objects and the explanation that accompanies them.

Pure functions with no I/O.  ``BillingPreview`` is derived, never persisted;
the facilities service assembles one per client-month from resolved line
items and totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.domain.records import (
    BillingDisplayMode,
    Client,
    EffectiveStatus,
    MonthlyOverride,
)
from billing_engines.aggregation import BillingTotals
from billing_engines.line_items import BillingLineItem, LineItemKind


def format_money(amount: Decimal) -> str:
    """``Decimal("1000")`` -> ``"$1,000.00"``."""
    return f"${amount:,.2f}"


@dataclass(frozen=True)
class BillingExplanation:
    """Location names grouped by effective status, plus override summaries."""

    active_facilities: tuple[str, ...] = ()
    paused_facilities: tuple[str, ...] = ()
    seasonally_paused: tuple[str, ...] = ()
    pending_approval: tuple[str, ...] = ()
    pending_go_live: tuple[str, ...] = ()
    closed_facilities: tuple[str, ...] = ()
    overrides: tuple[str, ...] = ()


@dataclass(frozen=True)
class BillingPreview:
    """
    The resolved invoice preview for one client-month.

    Invariant: ``subtotal + tax_amount == total``.

    A preview carries no previous-month total or delta.  Month-over-month
    comparison lives in ``FacilityBillingService.generate_delta``, which
    returns a ``DeltaReport``.
    """

    client_id: UUID
    client_name: str
    year: int
    month: int
    month_label: str
    line_items: tuple[BillingLineItem, ...]
    subtotal: Decimal
    facility_subtotal: Decimal
    service_subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    display_mode: BillingDisplayMode
    explanation: BillingExplanation
    active_facility_count: int
    total_facility_count: int

    @property
    def period(self) -> BillingPeriod:
        return BillingPeriod(self.year, self.month)

    @property
    def recurring_lines(self) -> tuple[BillingLineItem, ...]:
        return tuple(li for li in self.line_items if li.kind == LineItemKind.RECURRING)

    @property
    def service_lines(self) -> tuple[BillingLineItem, ...]:
        return tuple(li for li in self.line_items if li.kind == LineItemKind.SERVICE)


def describe_override(location_name: str, override: MonthlyOverride) -> str | None:
    """
    One-line summary of what a monthly override changes.

    Returns None when the override changes nothing.

    Example:
        "Main Office: rate to $1,200.00, status to PAUSED (holiday closure)"
    """
    parts: list[str] = []
    if override.override_rate is not None:
        parts.append(f"rate to {format_money(override.override_rate)}")
    if override.override_status is not None:
        parts.append(f"status to {override.override_status.value}")
    if override.override_frequency is not None:
        parts.append(f"frequency to {override.override_frequency}x/week")
    if override.override_days_of_week:
        days = ",".join(str(d) for d in sorted(override.override_days_of_week))
        parts.append(f"days to {days}")
    if override.has_day_range_pause:
        parts.append(
            f"paused {override.month}/{override.pause_start_day} to "
            f"{override.month}/{override.pause_end_day}"
        )
    if not parts:
        return None
    notes = f" ({override.override_notes})" if override.override_notes else ""
    return f"{location_name}: {', '.join(parts)}{notes}"


_STATUS_GROUPS = {
    EffectiveStatus.ACTIVE: "active_facilities",
    EffectiveStatus.PAUSED: "paused_facilities",
    EffectiveStatus.SEASONAL_PAUSED: "seasonally_paused",
    EffectiveStatus.PENDING_APPROVAL: "pending_approval",
    EffectiveStatus.PENDING: "pending_go_live",
    EffectiveStatus.CLOSED: "closed_facilities",
}


def build_explanation(
    line_items: Sequence[BillingLineItem],
    monthly_overrides: Sequence[MonthlyOverride],
) -> BillingExplanation:
    """Group recurring lines by status and describe the overrides that applied."""
    groups: dict[str, list[str]] = {name: [] for name in _STATUS_GROUPS.values()}
    overrides_by_facility = {o.facility_profile_id: o for o in monthly_overrides}
    descriptions: list[str] = []

    for line in line_items:
        if line.kind != LineItemKind.RECURRING:
            continue
        name = line.location_name or line.description
        groups[_STATUS_GROUPS[line.effective_status]].append(name)
        override = overrides_by_facility.get(line.facility_profile_id)
        if line.is_overridden and override is not None:
            description = describe_override(name, override)
            if description is not None:
                descriptions.append(description)

    return BillingExplanation(
        overrides=tuple(descriptions),
        **{name: tuple(names) for name, names in groups.items()},
    )


def assemble_preview(
    client: Client,
    period: BillingPeriod,
    line_items: Sequence[BillingLineItem],
    totals: BillingTotals,
    explanation: BillingExplanation,
) -> BillingPreview:
    recurring = [li for li in line_items if li.kind == LineItemKind.RECURRING]
    return BillingPreview(
        client_id=client.id,
        client_name=client.name,
        year=period.year,
        month=period.month,
        month_label=period.label,
        line_items=tuple(line_items),
        subtotal=totals.subtotal,
        facility_subtotal=totals.facility_subtotal,
        service_subtotal=totals.service_subtotal,
        tax_rate=client.tax_rate,
        tax_amount=totals.tax_amount,
        total=totals.total,
        display_mode=client.billing_display_mode,
        explanation=explanation,
        active_facility_count=sum(1 for li in recurring if li.included_in_total),
        total_facility_count=len(recurring),
    )
