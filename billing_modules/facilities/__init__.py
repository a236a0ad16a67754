"""
Facility Billing Module (``billing_modules.facilities``).

Responsibility
--------------
Thin glue for facility billing: configuration, ORM models, the repository
boundary, and ``FacilityBillingService``, which turns stored facility
contracts and their override layers into invoice previews and deltas.

Architecture position
---------------------
**Modules layer** -- delegates every calculation to ``billing_engines``.
"""

from billing_modules.facilities.config import FacilityBillingConfig, load_config
from billing_modules.facilities.repository import (
    FacilityBillingRepository,
    SqlFacilityBillingRepository,
)
from billing_modules.facilities.service import FacilityBillingService

__all__ = [
    "FacilityBillingConfig",
    "FacilityBillingRepository",
    "FacilityBillingService",
    "SqlFacilityBillingRepository",
    "load_config",
]
