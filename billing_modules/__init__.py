"""
Billing Modules.

Thin orchestration layers over the Billing Kernel and Engines.

Modules:
- Facilities: facility contracts, override layers, invoice previews and
  month-over-month deltas

Actual calculation logic lives in the engines.
"""

from billing_modules import facilities

__all__ = ["facilities"]
