"""
Delta Comparator -- month-over-month comparison of two billing previews.

Pure functions with no I/O.

Recurring lines of the two previews are merged by facility_profile_id:

    only in current   -> ADDED    (is_new, previous fields zeroed)
    only in previous  -> REMOVED  (is_removed, current fields zeroed)
    in both           -> UNCHANGED when total and status are equal, else CHANGED

Report-level deltas are current minus previous on the aggregate figures.
They reconcile with the per-facility figures:

    subtotal_delta == sum(facility.total_delta) + service_subtotal_delta
    tax_delta      == sum(facility.tax_delta)   + service_tax_delta
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.records import EffectiveStatus
from billing_kernel.logging_config import get_logger
from billing_engines.line_items import BillingLineItem, LineItemKind
from billing_engines.preview import BillingPreview, format_money
from billing_engines.tracer import traced_engine

logger = get_logger("engines.delta")

_ZERO = Decimal("0.00")


class ChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class MonthSummary:
    year: int
    month: int
    month_label: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal

    @classmethod
    def from_preview(cls, preview: BillingPreview) -> MonthSummary:
        return cls(
            year=preview.year,
            month=preview.month,
            month_label=preview.month_label,
            subtotal=preview.subtotal,
            tax_amount=preview.tax_amount,
            total=preview.total,
        )


@dataclass(frozen=True)
class FacilityDelta:
    """
    One facility's change between the previous and the current month.

    Status fields are None on the side where the facility is absent.
    """

    facility_profile_id: UUID
    location_name: str
    category: str | None
    change_type: ChangeType
    current_status: EffectiveStatus | None
    previous_status: EffectiveStatus | None
    current_rate: Decimal
    previous_rate: Decimal
    current_frequency: int
    previous_frequency: int
    current_included: bool
    previous_included: bool
    current_total: Decimal
    previous_total: Decimal
    total_delta: Decimal
    current_tax: Decimal
    previous_tax: Decimal
    tax_delta: Decimal
    is_new: bool = False
    is_removed: bool = False


@dataclass(frozen=True)
class DeltaReport:
    current_month: MonthSummary
    previous_month: MonthSummary
    total_delta: Decimal
    subtotal_delta: Decimal
    tax_delta: Decimal
    service_subtotal_delta: Decimal
    service_tax_delta: Decimal
    facilities: tuple[FacilityDelta, ...]
    changed_count: int
    unchanged_count: int
    delta_reason: str | None

    @property
    def changed(self) -> tuple[FacilityDelta, ...]:
        return tuple(f for f in self.facilities if f.change_type != ChangeType.UNCHANGED)


def describe_delta(total_delta: Decimal, previous_month_label: str) -> str | None:
    """``"$1,000.00 increase from October"``, or None when nothing moved."""
    if total_delta == 0:
        return None
    direction = "increase" if total_delta > 0 else "decrease"
    return f"{format_money(abs(total_delta))} {direction} from {previous_month_label}"


def _merge_facility(
    current: BillingLineItem | None,
    previous: BillingLineItem | None,
) -> FacilityDelta:
    if current is not None and previous is not None:
        total_delta = current.line_item_total - previous.line_item_total
        unchanged = total_delta == 0 and current.effective_status == previous.effective_status
        change_type = ChangeType.UNCHANGED if unchanged else ChangeType.CHANGED
    elif current is not None:
        change_type = ChangeType.ADDED
    else:
        change_type = ChangeType.REMOVED

    named = current if current is not None else previous
    current_total = current.line_item_total if current else _ZERO
    previous_total = previous.line_item_total if previous else _ZERO
    current_tax = current.line_item_tax if current else _ZERO
    previous_tax = previous.line_item_tax if previous else _ZERO

    return FacilityDelta(
        facility_profile_id=named.facility_profile_id,
        location_name=named.location_name or named.description,
        category=named.category,
        change_type=change_type,
        current_status=current.effective_status if current else None,
        previous_status=previous.effective_status if previous else None,
        current_rate=current.effective_rate if current else _ZERO,
        previous_rate=previous.effective_rate if previous else _ZERO,
        current_frequency=current.effective_frequency if current else 0,
        previous_frequency=previous.effective_frequency if previous else 0,
        current_included=current.included_in_total if current else False,
        previous_included=previous.included_in_total if previous else False,
        current_total=current_total,
        previous_total=previous_total,
        total_delta=current_total - previous_total,
        current_tax=current_tax,
        previous_tax=previous_tax,
        tax_delta=current_tax - previous_tax,
        is_new=change_type == ChangeType.ADDED,
        is_removed=change_type == ChangeType.REMOVED,
    )


def _service_tax(preview: BillingPreview) -> Decimal:
    return sum((li.line_item_tax for li in preview.service_lines), _ZERO)


@traced_engine("delta", "1.0")
def compare_previews(current: BillingPreview, previous: BillingPreview) -> DeltaReport:
    """
    Diff two previews of the same client.

    Facilities appear in current-month order, followed by facilities only
    present in the previous month, in previous-month order.

    Args:
        current: Preview for the target month
        previous: Preview for the month being compared against

    Returns:
        DeltaReport
    """
    if current.client_id != previous.client_id:
        raise ValueError("previews belong to different clients")

    current_lines = {li.facility_profile_id: li for li in current.recurring_lines}
    previous_lines = {li.facility_profile_id: li for li in previous.recurring_lines}

    ordered_ids = list(current_lines)
    ordered_ids += [fid for fid in previous_lines if fid not in current_lines]

    facilities = tuple(
        _merge_facility(current_lines.get(fid), previous_lines.get(fid))
        for fid in ordered_ids
    )
    unchanged_count = sum(1 for f in facilities if f.change_type == ChangeType.UNCHANGED)
    total_delta = current.total - previous.total

    report = DeltaReport(
        current_month=MonthSummary.from_preview(current),
        previous_month=MonthSummary.from_preview(previous),
        total_delta=total_delta,
        subtotal_delta=current.subtotal - previous.subtotal,
        tax_delta=current.tax_amount - previous.tax_amount,
        service_subtotal_delta=current.service_subtotal - previous.service_subtotal,
        service_tax_delta=_service_tax(current) - _service_tax(previous),
        facilities=facilities,
        changed_count=len(facilities) - unchanged_count,
        unchanged_count=unchanged_count,
        delta_reason=describe_delta(total_delta, previous.month_label),
    )

    logger.debug("billing_delta_compared", extra={
        "client_id": str(current.client_id),
        "current_period": str(current.period),
        "previous_period": str(previous.period),
        "total_delta": str(report.total_delta),
        "changed_count": report.changed_count,
        "unchanged_count": report.unchanged_count,
    })

    return report
