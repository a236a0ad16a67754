"""
Line-Item Builder -- resolved facility-months and ad-hoc charges to invoice rows.

Pure functions with no I/O.

Every facility contributes exactly one RECURRING line, even when its
effective status excludes it from the total (the preview shows paused and
closed rows with a zero total).  Every billable ad-hoc charge for the target
month contributes one SERVICE line.

Tax is decided per line:

    INHERIT_CLIENT, PRE_TAX -> taxable unless the client is tax exempt
    TAXABLE                 -> taxable, even for an exempt client
    EXEMPT, TAX_INCLUDED    -> never adds tax

and rounded per line, half-up to cents, before anything is summed.

Usage:
    from billing_engines.line_items import build_line_items

    lines = build_line_items(client, facilities, states, ad_hoc_items, locations, 2026, 3)
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Sequence
from uuid import UUID

from billing_kernel.domain.records import (
    Client,
    EffectiveStatus,
    FacilityProfile,
    Location,
    ServiceItemStatus,
    ServiceLineItem,
    TaxBehavior,
)
from billing_kernel.exceptions import LocationNotFoundError
from billing_kernel.logging_config import get_logger
from billing_engines.proration import count_scheduled_days, prorate_rate
from billing_engines.resolution import EffectiveState
from billing_engines.tracer import traced_engine

logger = get_logger("engines.line_items")

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0.00")

DEFAULT_BILLABLE_SERVICE_STATUSES: frozenset[ServiceItemStatus] = frozenset({
    ServiceItemStatus.PENDING,
    ServiceItemStatus.COMPLETED,
})


class LineItemKind(str, Enum):
    RECURRING = "RECURRING"
    SERVICE = "SERVICE"


@dataclass(frozen=True)
class BillingLineItem:
    """
    One row of a client-month preview.

    RECURRING rows carry the facility's effective state; SERVICE rows carry
    ``quantity`` and ``unit_rate`` and always have status ACTIVE.

    ``scheduled_days``/``active_days`` are set only for billed rows with a
    day-range pause; ``is_prorated`` means the pause removed at least one
    scheduled day.
    """

    kind: LineItemKind
    description: str
    effective_status: EffectiveStatus
    effective_rate: Decimal
    included_in_total: bool
    line_item_total: Decimal
    tax_behavior: TaxBehavior
    is_taxable: bool
    line_item_tax: Decimal
    facility_profile_id: UUID | None = None
    service_line_item_id: UUID | None = None
    location_name: str | None = None
    category: str | None = None
    effective_frequency: int = 0
    days_of_week: tuple[int, ...] = ()
    quantity: Decimal = Decimal("1")
    unit_rate: Decimal = _ZERO
    is_overridden: bool = False
    is_seasonally_paused: bool = False
    is_prorated: bool = False
    scheduled_days: int | None = None
    active_days: int | None = None
    override_notes: str | None = None


def round_currency(amount: Decimal) -> Decimal:
    """Round half-up to cents."""
    return amount.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def resolve_taxability(client: Client, tax_behavior: TaxBehavior) -> bool:
    """Whether a line with ``tax_behavior`` is taxed for ``client``."""
    if tax_behavior == TaxBehavior.TAXABLE:
        return True
    if tax_behavior in (TaxBehavior.EXEMPT, TaxBehavior.TAX_INCLUDED):
        return False
    return not client.tax_exempt


def calculate_line_tax(line_total: Decimal, tax_rate: Decimal, is_taxable: bool) -> Decimal:
    """Tax for one line, rounded before it is summed with any other line."""
    if not is_taxable:
        return _ZERO
    return round_currency(line_total * tax_rate)


def _recurring_line(
    client: Client,
    facility: FacilityProfile,
    state: EffectiveState,
    location: Location,
) -> BillingLineItem:
    total = _ZERO
    days = None
    if state.included_in_total:
        if state.has_day_range_pause:
            days = count_scheduled_days(
                state.year,
                state.month,
                state.days_of_week,
                state.pause_start_day,
                state.pause_end_day,
            )
            total = prorate_rate(state.rate, days)
        else:
            total = round_currency(state.rate)

    is_taxable = resolve_taxability(client, facility.tax_behavior)
    return BillingLineItem(
        kind=LineItemKind.RECURRING,
        description=location.name,
        effective_status=state.status,
        effective_rate=state.rate,
        included_in_total=state.included_in_total,
        line_item_total=total,
        tax_behavior=facility.tax_behavior,
        is_taxable=is_taxable,
        line_item_tax=calculate_line_tax(total, client.tax_rate, is_taxable),
        facility_profile_id=facility.id,
        location_name=location.name,
        category=facility.category,
        effective_frequency=state.frequency,
        days_of_week=state.days_of_week,
        unit_rate=state.rate,
        is_overridden=state.is_overridden,
        is_seasonally_paused=state.is_seasonally_paused,
        is_prorated=days is not None and days.is_partial,
        scheduled_days=days.scheduled if days is not None else None,
        active_days=days.active if days is not None else None,
        override_notes=state.override_notes,
    )


def _service_line(
    client: Client,
    item: ServiceLineItem,
    location_name: str | None,
    category: str | None,
) -> BillingLineItem:
    total = round_currency(item.quantity * item.unit_rate)
    is_taxable = resolve_taxability(client, item.tax_behavior)
    return BillingLineItem(
        kind=LineItemKind.SERVICE,
        description=item.description,
        effective_status=EffectiveStatus.ACTIVE,
        effective_rate=item.unit_rate,
        included_in_total=True,
        line_item_total=total,
        tax_behavior=item.tax_behavior,
        is_taxable=is_taxable,
        line_item_tax=calculate_line_tax(total, client.tax_rate, is_taxable),
        facility_profile_id=item.facility_profile_id,
        service_line_item_id=item.id,
        location_name=location_name,
        category=category,
        quantity=item.quantity,
        unit_rate=item.unit_rate,
    )


@traced_engine(
    "line_items", "1.0",
    fingerprint_fields=("client", "resolved_states", "ad_hoc_items", "year", "month"),
)
def build_line_items(
    client: Client,
    facilities: Sequence[FacilityProfile],
    resolved_states: Sequence[EffectiveState],
    ad_hoc_items: Sequence[ServiceLineItem],
    locations: Sequence[Location],
    year: int,
    month: int,
    billable_statuses: Collection[ServiceItemStatus] = DEFAULT_BILLABLE_SERVICE_STATUSES,
) -> tuple[BillingLineItem, ...]:
    """
    Build the ordered line items for one client-month.

    Recurring lines come first, in facility order, followed by service lines
    in input order.

    Args:
        client: Client whose tax identity applies to every line
        facilities: Facility profiles, in display order
        resolved_states: Effective state per facility, same order
        ad_hoc_items: Candidate ad-hoc charges (other months are skipped)
        locations: The client's locations
        year: Target year
        month: Target month
        billable_statuses: Service item statuses that are billed

    Returns:
        Tuple of BillingLineItem

    Raises:
        ValueError: If facilities and resolved_states differ in length
        LocationNotFoundError: If a facility's location is missing
    """
    if len(facilities) != len(resolved_states):
        raise ValueError(
            f"facilities ({len(facilities)}) and resolved_states "
            f"({len(resolved_states)}) must have the same length"
        )

    locations_by_id = {location.id: location for location in locations}
    facilities_by_id = {facility.id: facility for facility in facilities}
    lines: list[BillingLineItem] = []

    for facility, state in zip(facilities, resolved_states):
        if state.facility_profile_id != facility.id:
            raise ValueError(
                f"resolved state for {state.facility_profile_id} does not belong "
                f"to facility {facility.id}"
            )
        location = locations_by_id.get(facility.location_id)
        if location is None:
            logger.error("facility_location_missing", extra={
                "facility_profile_id": str(facility.id),
                "location_id": str(facility.location_id),
            })
            raise LocationNotFoundError(str(facility.id), str(facility.location_id))
        lines.append(_recurring_line(client, facility, state, location))

    skipped = 0
    for item in ad_hoc_items:
        if item.year != year or item.month != month or item.status not in billable_statuses:
            skipped += 1
            continue
        location_name = None
        category = None
        linked = facilities_by_id.get(item.facility_profile_id)
        if linked is not None:
            linked_location = locations_by_id.get(linked.location_id)
            location_name = linked_location.name if linked_location else None
            category = linked.category
        lines.append(_service_line(client, item, location_name, category))

    logger.debug("line_items_built", extra={
        "client_id": str(client.id),
        "year": year,
        "month": month,
        "recurring_count": len(facilities),
        "service_count": len(lines) - len(facilities),
        "service_skipped": skipped,
    })

    return tuple(lines)
