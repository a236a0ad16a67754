"""
Facility Billing Configuration (``billing_modules.facilities.config``).

Responsibility
--------------
Declarative settings for preview and delta generation: which ad-hoc service
statuses are billed, and whether the two months of a delta are resolved in
parallel.  Currency precision (cents, ROUND_HALF_UP) and per-line tax
rounding are fixed in ``billing_engines.line_items`` and are not settings.

Invariants enforced
-------------------
* ``__post_init__`` validates every field.
* ``load_config`` rejects unknown keys instead of ignoring them.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from billing_kernel.domain.records import ServiceItemStatus
from billing_kernel.logging_config import get_logger
from billing_engines.line_items import DEFAULT_BILLABLE_SERVICE_STATUSES

logger = get_logger("modules.facilities.config")


@dataclass
class FacilityBillingConfig:
    """Settings for ``FacilityBillingService``."""

    billable_service_statuses: frozenset[ServiceItemStatus] = field(
        default_factory=lambda: DEFAULT_BILLABLE_SERVICE_STATUSES
    )
    parallel_delta: bool = False
    delta_workers: int = 2

    def __post_init__(self):
        self.billable_service_statuses = frozenset(
            ServiceItemStatus(s) for s in self.billable_service_statuses
        )
        if ServiceItemStatus.CANCELLED in self.billable_service_statuses:
            raise ValueError("cancelled service items cannot be billable")
        if self.delta_workers < 1:
            raise ValueError("delta_workers must be at least 1")
        logger.debug(
            "facility_billing_config_initialized",
            extra={
                "billable_service_statuses": sorted(
                    s.value for s in self.billable_service_statuses
                ),
                "parallel_delta": self.parallel_delta,
                "delta_workers": self.delta_workers,
            },
        )


def config_from_dict(data: dict[str, Any]) -> FacilityBillingConfig:
    """
    Build a config from a parsed mapping.  Missing keys take defaults.

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    known = {f.name for f in fields(FacilityBillingConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown facility billing config keys: {', '.join(unknown)}")
    values = dict(data)
    if "billable_service_statuses" in values:
        values["billable_service_statuses"] = frozenset(values["billable_service_statuses"])
    return FacilityBillingConfig(**values)


def load_config(path: str | Path) -> FacilityBillingConfig:
    """Load ``FacilityBillingConfig`` from a YAML file."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    config = config_from_dict(data)
    logger.info("facility_billing_config_loaded", extra={"path": str(path)})
    return config
