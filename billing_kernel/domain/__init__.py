"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.periods import MONTH_LABELS, BillingPeriod
from billing_kernel.domain.records import (
    BillingDisplayMode,
    Client,
    EffectiveStatus,
    FacilityProfile,
    FacilityStatus,
    Location,
    MonthlyOverride,
    OverrideStatus,
    PaymentTerms,
    RateType,
    SeasonalRule,
    ServiceItemStatus,
    ServiceLineItem,
    TaxBehavior,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "MONTH_LABELS",
    "BillingPeriod",
    "BillingDisplayMode",
    "Client",
    "EffectiveStatus",
    "FacilityProfile",
    "FacilityStatus",
    "Location",
    "MonthlyOverride",
    "OverrideStatus",
    "PaymentTerms",
    "RateType",
    "SeasonalRule",
    "ServiceItemStatus",
    "ServiceLineItem",
    "TaxBehavior",
]
