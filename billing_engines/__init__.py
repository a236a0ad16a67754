"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    billing calculation engines.  This is the canonical import surface for
    billing_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.domain, billing_kernel.exceptions,
    billing_kernel.logging_config and sibling engine modules.
    MUST NOT import billing_modules, billing_kernel.db or sqlalchemy.

Invariants enforced:
    - Purity: engines NEVER read the wall clock.  Billing periods are
      passed in explicitly; callers own "now".
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs, and
      no engine keeps state between calls.

Audit relevance:
    Engine entry points are wrapped in ``@traced_engine`` (see
    ``billing_engines.tracer``) and emit BILLING_ENGINE_TRACE log records.

Usage:
    from billing_engines import resolve_effective_state, build_line_items, aggregate
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("engines")

from billing_engines.aggregation import BillingTotals, aggregate
from billing_engines.delta import (
    ChangeType,
    DeltaReport,
    FacilityDelta,
    MonthSummary,
    compare_previews,
    describe_delta,
)
from billing_engines.line_items import (
    DEFAULT_BILLABLE_SERVICE_STATUSES,
    BillingLineItem,
    LineItemKind,
    build_line_items,
    calculate_line_tax,
    resolve_taxability,
    round_currency,
)
from billing_engines.preview import (
    BillingExplanation,
    BillingPreview,
    assemble_preview,
    build_explanation,
    describe_override,
)
from billing_engines.proration import ScheduledDays, count_scheduled_days, prorate_rate
from billing_engines.resolution import (
    RESOLUTION_LAYERS,
    EffectiveState,
    LayerOpinion,
    ResolutionContext,
    ResolutionLayer,
    apply_layers,
    resolve_effective_state,
)
from billing_engines.tracer import traced_engine

__all__ = [
    # Resolution
    "RESOLUTION_LAYERS",
    "EffectiveState",
    "LayerOpinion",
    "ResolutionContext",
    "ResolutionLayer",
    "apply_layers",
    "resolve_effective_state",
    # Proration
    "ScheduledDays",
    "count_scheduled_days",
    "prorate_rate",
    # Line items
    "DEFAULT_BILLABLE_SERVICE_STATUSES",
    "BillingLineItem",
    "LineItemKind",
    "build_line_items",
    "calculate_line_tax",
    "resolve_taxability",
    "round_currency",
    # Aggregation
    "BillingTotals",
    "aggregate",
    # Preview
    "BillingExplanation",
    "BillingPreview",
    "assemble_preview",
    "build_explanation",
    "describe_override",
    # Delta
    "ChangeType",
    "DeltaReport",
    "FacilityDelta",
    "MonthSummary",
    "compare_previews",
    "describe_delta",
    # Tracing
    "traced_engine",
]
