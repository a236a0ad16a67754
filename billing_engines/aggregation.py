"""
Aggregator -- client-month totals from line items.

Pure functions with no I/O.

    subtotal   = sum(line_item_total)
    tax_amount = sum(round_half_up(line_item_total * tax_rate, 0.01)) over taxable lines
    total      = subtotal + tax_amount

Tax is rounded per line before summing, so ``tax_amount`` always equals the
sum of the ``line_item_tax`` values shown on the lines.  Rounding the summed
tax once instead can differ by a cent or more.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from billing_kernel.domain.records import Client
from billing_kernel.logging_config import get_logger
from billing_engines.line_items import (
    BillingLineItem,
    LineItemKind,
    calculate_line_tax,
)
from billing_engines.tracer import traced_engine

logger = get_logger("engines.aggregation")

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class BillingTotals:
    """Aggregate money figures for one client-month."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    facility_subtotal: Decimal
    service_subtotal: Decimal

    def __post_init__(self) -> None:
        if self.subtotal + self.tax_amount != self.total:
            raise ValueError(
                f"total {self.total} != subtotal {self.subtotal} + tax {self.tax_amount}"
            )


@traced_engine("aggregation", "1.0", fingerprint_fields=("client", "line_items"))
def aggregate(client: Client, line_items: Sequence[BillingLineItem]) -> BillingTotals:
    """
    Sum line items into subtotal, tax and total.

    Excluded recurring lines carry a zero total and contribute nothing.

    Args:
        client: Client whose tax rate applies
        line_items: Lines from ``build_line_items``

    Returns:
        BillingTotals
    """
    facility_subtotal = _ZERO
    service_subtotal = _ZERO
    tax_amount = _ZERO

    for line in line_items:
        if line.kind == LineItemKind.RECURRING:
            facility_subtotal += line.line_item_total
        else:
            service_subtotal += line.line_item_total
        tax_amount += calculate_line_tax(line.line_item_total, client.tax_rate, line.is_taxable)

    subtotal = facility_subtotal + service_subtotal
    totals = BillingTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
        facility_subtotal=facility_subtotal,
        service_subtotal=service_subtotal,
    )

    logger.debug("billing_totals_aggregated", extra={
        "client_id": str(client.id),
        "line_count": len(line_items),
        "subtotal": str(totals.subtotal),
        "tax_amount": str(totals.tax_amount),
        "total": str(totals.total),
    })

    return totals
