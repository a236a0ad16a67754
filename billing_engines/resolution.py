"""
Effective-State Resolver -- what is actually in force for a facility-month.

Pure functions with deterministic behavior. No I/O.

A facility's billed state for a calendar month is the result of a fixed
precedence chain over layered, time-scoped rules.  Each layer is a small
function that inspects a ``ResolutionContext`` and returns either a
``LayerOpinion`` (a partial or complete resolution) or ``None`` (no
opinion).  Layers are evaluated in order; the first opinion to set a field
wins that field, and a terminal opinion ends the chain.

Precedence (highest first):
    1. Closed guard      -- CLOSED facility: CLOSED / 0 / 0, terminal.
    2. Go-live guard     -- month before go-live month: PENDING / 0 / 0, terminal.
    3. Monthly override  -- one-off status/rate/frequency/days for this month.
    4. Seasonal rule     -- recurring month-of-year pauses and rates.
    5. Pause window      -- explicit pause_start_date..pause_end_date, by month.
    6. Base              -- the facility's own status, rate, frequency.

Usage:
    from billing_engines.resolution import resolve_effective_state

    state = resolve_effective_state(
        facility=profile,
        seasonal_rules=rules,
        monthly_overrides=overrides,
        year=2026,
        month=10,
    )
    state.status            # EffectiveStatus.PAUSED
    state.included_in_total # False
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Sequence
from uuid import UUID

from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.domain.records import (
    EffectiveStatus,
    FacilityProfile,
    FacilityStatus,
    MonthlyOverride,
    OverrideStatus,
    SeasonalRule,
)
from billing_kernel.exceptions import DuplicateOverrideError
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.resolution")

_ZERO = Decimal("0")

_OVERRIDE_STATUS_MAP = {
    OverrideStatus.ACTIVE: EffectiveStatus.ACTIVE,
    OverrideStatus.PAUSED: EffectiveStatus.PAUSED,
    OverrideStatus.CANCELLED: EffectiveStatus.CLOSED,
}


class ResolutionLayer(str, Enum):
    """Layers of the precedence chain, highest precedence first."""

    CLOSED_GUARD = "closed_guard"
    GO_LIVE_GUARD = "go_live_guard"
    MONTHLY_OVERRIDE = "monthly_override"
    SEASONAL_RULE = "seasonal_rule"
    PAUSE_WINDOW = "pause_window"
    BASE = "base"


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class ResolutionContext:
    """Everything a layer may look at for one facility-month."""

    facility: FacilityProfile
    seasonal_rules: tuple[SeasonalRule, ...]
    monthly_override: MonthlyOverride | None
    period: BillingPeriod


@dataclass(frozen=True)
class LayerOpinion:
    """
    A layer's (possibly partial) resolution.

    ``None`` fields are left for lower layers to decide.
    """

    layer: ResolutionLayer
    status: EffectiveStatus | None = None
    rate: Decimal | None = None
    frequency: int | None = None
    days_of_week: tuple[int, ...] | None = None
    terminal: bool = False


@dataclass(frozen=True)
class EffectiveState:
    """
    The status, rate and frequency in force for one facility-month.

    Attributes:
        status_layer: Layer that decided ``status``
        is_overridden: A monthly override for this month took part
        is_seasonally_paused: A seasonal rule paused this month
        pause_start_day: First paused day of a day-range pause (1-31)
        pause_end_day: Last paused day of a day-range pause (1-31)
    """

    facility_profile_id: UUID
    year: int
    month: int
    status: EffectiveStatus
    rate: Decimal
    frequency: int
    days_of_week: tuple[int, ...]
    status_layer: ResolutionLayer
    is_overridden: bool = False
    is_seasonally_paused: bool = False
    override_notes: str | None = None
    pause_start_day: int | None = None
    pause_end_day: int | None = None

    @property
    def included_in_total(self) -> bool:
        """Only ACTIVE facility-months are billed."""
        return self.status == EffectiveStatus.ACTIVE

    @property
    def has_day_range_pause(self) -> bool:
        return self.pause_start_day is not None and self.pause_end_day is not None


# ============================================================================
# Layers
# ============================================================================


Layer = Callable[[ResolutionContext], LayerOpinion | None]


def closed_guard(ctx: ResolutionContext) -> LayerOpinion | None:
    """A CLOSED facility stays CLOSED for every month, whatever else applies."""
    if ctx.facility.status != FacilityStatus.CLOSED:
        return None
    return LayerOpinion(
        layer=ResolutionLayer.CLOSED_GUARD,
        status=EffectiveStatus.CLOSED,
        rate=_ZERO,
        frequency=0,
        days_of_week=(),
        terminal=True,
    )


def go_live_guard(ctx: ResolutionContext) -> LayerOpinion | None:
    """Months strictly before the go-live month are PENDING and unbilled."""
    go_live = ctx.facility.go_live_date
    if go_live is None or ctx.period >= BillingPeriod.containing(go_live):
        return None
    return LayerOpinion(
        layer=ResolutionLayer.GO_LIVE_GUARD,
        status=EffectiveStatus.PENDING,
        rate=_ZERO,
        frequency=0,
        days_of_week=(),
        terminal=True,
    )


def monthly_override_layer(ctx: ResolutionContext) -> LayerOpinion | None:
    override = ctx.monthly_override
    if override is None:
        return None
    status = None
    if override.override_status is not None:
        status = _OVERRIDE_STATUS_MAP[override.override_status]
    return LayerOpinion(
        layer=ResolutionLayer.MONTHLY_OVERRIDE,
        status=status,
        rate=override.override_rate,
        frequency=override.override_frequency,
        days_of_week=override.override_days_of_week or None,
    )


def seasonal_rule_layer(ctx: ResolutionContext) -> LayerOpinion | None:
    """
    Apply active seasonal rules that speak to this month.

    A pausing rule only changes status for a facility whose own status is
    ACTIVE; a facility already paused or awaiting approval keeps that status.
    Rate and frequency come from the first matching rule that carries them,
    pausing rules first.
    """
    facility = ctx.facility
    if not facility.seasonal_rules_enabled:
        return None

    year, month = ctx.period.year, ctx.period.month
    matching = [
        rule for rule in ctx.seasonal_rules
        if rule.is_active
        and rule.facility_profile_id == facility.id
        and rule.applies_to_year(year)
        and rule.matches_month(month)
    ]
    if not matching:
        return None

    pausing = [rule for rule in matching if rule.pauses_month(month)]
    ordered = pausing + [rule for rule in matching if rule not in pausing]

    status = None
    if pausing and facility.status == FacilityStatus.ACTIVE:
        status = EffectiveStatus.SEASONAL_PAUSED
    rate = next((r.override_rate for r in ordered if r.override_rate is not None), None)
    frequency = next(
        (r.override_frequency for r in ordered if r.override_frequency is not None), None
    )

    if status is None and rate is None and frequency is None:
        return None
    return LayerOpinion(
        layer=ResolutionLayer.SEASONAL_RULE,
        status=status,
        rate=rate,
        frequency=frequency,
    )


def pause_window_layer(ctx: ResolutionContext) -> LayerOpinion | None:
    """Months from the pause start month to the pause end month, inclusive."""
    facility = ctx.facility
    if facility.pause_start_date is None:
        return None
    if ctx.period < BillingPeriod.containing(facility.pause_start_date):
        return None
    # open end: paused until someone sets an end date
    if (
        facility.pause_end_date is not None
        and ctx.period > BillingPeriod.containing(facility.pause_end_date)
    ):
        return None
    return LayerOpinion(layer=ResolutionLayer.PAUSE_WINDOW, status=EffectiveStatus.PAUSED)


def base_layer(ctx: ResolutionContext) -> LayerOpinion:
    facility = ctx.facility
    return LayerOpinion(
        layer=ResolutionLayer.BASE,
        status=EffectiveStatus.from_facility_status(facility.status),
        rate=facility.default_monthly_rate,
        frequency=facility.normal_frequency_per_week,
        days_of_week=facility.normal_days_of_week,
    )


RESOLUTION_LAYERS: tuple[Layer, ...] = (
    closed_guard,
    go_live_guard,
    monthly_override_layer,
    seasonal_rule_layer,
    pause_window_layer,
    base_layer,
)


# ============================================================================
# Resolution
# ============================================================================


def find_monthly_override(
    facility_profile_id: UUID,
    monthly_overrides: Sequence[MonthlyOverride],
    period: BillingPeriod,
) -> MonthlyOverride | None:
    """
    Select the single override for (facility, period).

    Overrides for other facilities or months are ignored.

    Raises:
        DuplicateOverrideError: If more than one override matches.
    """
    matches = [
        o for o in monthly_overrides
        if o.facility_profile_id == facility_profile_id
        and o.year == period.year
        and o.month == period.month
    ]
    if len(matches) > 1:
        logger.error("duplicate_monthly_override", extra={
            "facility_profile_id": str(facility_profile_id),
            "period": str(period),
            "count": len(matches),
        })
        raise DuplicateOverrideError(
            str(facility_profile_id), period.year, period.month, len(matches)
        )
    return matches[0] if matches else None


def apply_layers(
    ctx: ResolutionContext,
    layers: Sequence[Layer] = RESOLUTION_LAYERS,
) -> tuple[EffectiveState, tuple[ResolutionLayer, ...]]:
    """
    Run ``layers`` over ``ctx`` and merge their opinions.

    Returns:
        Tuple of (effective state, layers that returned an opinion)
    """
    status: EffectiveStatus | None = None
    status_layer: ResolutionLayer | None = None
    rate: Decimal | None = None
    frequency: int | None = None
    days_of_week: tuple[int, ...] | None = None
    consulted: list[ResolutionLayer] = []

    for layer in layers:
        opinion = layer(ctx)
        if opinion is None:
            continue
        consulted.append(opinion.layer)
        if status is None and opinion.status is not None:
            status = opinion.status
            status_layer = opinion.layer
        if rate is None and opinion.rate is not None:
            rate = opinion.rate
        if frequency is None and opinion.frequency is not None:
            frequency = opinion.frequency
        if days_of_week is None and opinion.days_of_week is not None:
            days_of_week = opinion.days_of_week
        if opinion.terminal:
            break

    if status is None or rate is None or frequency is None or days_of_week is None:
        raise ValueError("resolution layers must end with a layer that sets every field")

    override = ctx.monthly_override
    is_overridden = ResolutionLayer.MONTHLY_OVERRIDE in consulted
    state = EffectiveState(
        facility_profile_id=ctx.facility.id,
        year=ctx.period.year,
        month=ctx.period.month,
        status=status,
        rate=rate,
        frequency=frequency,
        days_of_week=tuple(sorted(set(days_of_week))),
        status_layer=status_layer,
        is_overridden=is_overridden,
        is_seasonally_paused=status_layer == ResolutionLayer.SEASONAL_RULE,
        override_notes=override.override_notes if is_overridden else None,
        pause_start_day=override.pause_start_day if is_overridden else None,
        pause_end_day=override.pause_end_day if is_overridden else None,
    )
    return state, tuple(consulted)


@traced_engine(
    "resolution", "1.0",
    fingerprint_fields=("facility", "seasonal_rules", "monthly_overrides", "year", "month"),
)
def resolve_effective_state(
    facility: FacilityProfile,
    seasonal_rules: Sequence[SeasonalRule],
    monthly_overrides: Sequence[MonthlyOverride],
    year: int,
    month: int,
) -> EffectiveState:
    """
    Resolve the effective status, rate and frequency for one facility-month.

    Pure function - no side effects, no I/O, deterministic output.

    Args:
        facility: The facility contract
        seasonal_rules: Seasonal rules (inactive or foreign rules are ignored)
        monthly_overrides: Monthly overrides (other months are ignored)
        year: Calendar year
        month: Calendar month, 1-12

    Returns:
        EffectiveState for (facility, year, month)

    Raises:
        InvalidBillingPeriodError: If (year, month) is not a valid period
        DuplicateOverrideError: If two overrides target the same month
    """
    period = BillingPeriod.of(year, month)
    ctx = ResolutionContext(
        facility=facility,
        seasonal_rules=tuple(seasonal_rules),
        monthly_override=find_monthly_override(facility.id, monthly_overrides, period),
        period=period,
    )

    state, consulted = apply_layers(ctx)

    logger.debug("facility_state_resolved", extra={
        "facility_profile_id": str(facility.id),
        "period": str(period),
        "status": state.status.value,
        "status_layer": state.status_layer.value,
        "rate": str(state.rate),
        "frequency": state.frequency,
        "layers_consulted": [layer.value for layer in consulted],
    })

    return state
