"""
Facility Billing Service (``billing_modules.facilities.service``).

Responsibility
--------------
Orchestrates invoice previews and month-over-month deltas for one client:
loads records once from the repository, then delegates every calculation to
the pure engines in ``billing_engines`` (resolver -> line-item builder ->
aggregator -> delta comparator).

Architecture position
---------------------
**Modules layer** -- thin glue.  ``FacilityBillingService`` is the public
entry point for billing previews.  It holds no state between calls beyond
its collaborators.

Invariants enforced
-------------------
* The billing period is validated before any repository call.
* Tenant isolation: a client outside ``company_id`` is reported exactly like
  a missing client (``ClientNotFoundError``).
* Engine errors are logged and re-raised, never turned into partial output.
* Identical repository state yields identical previews.

Failure modes
-------------
* ``InvalidBillingPeriodError`` for a malformed year/month.
* ``ClientNotFoundError`` for a missing or foreign client.
* ``LocationNotFoundError`` / ``DuplicateOverrideError`` for inconsistent
  stored data; the whole preview fails.

Usage::

    service = FacilityBillingService(repository, clock=clock)
    preview = service.generate_billing_preview(client_id, company_id, 2026, 3)
    report = service.generate_delta(client_id, company_id, 2026, 11)
"""

from __future__ import annotations

import contextvars
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from uuid import UUID

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.exceptions import ClientNotFoundError, FacilityBillingError
from billing_kernel.logging_config import LogContext, get_logger
from billing_engines.aggregation import aggregate
from billing_engines.delta import DeltaReport, compare_previews
from billing_engines.line_items import build_line_items
from billing_engines.preview import BillingPreview, assemble_preview, build_explanation
from billing_engines.resolution import resolve_effective_state
from billing_modules.facilities.config import FacilityBillingConfig
from billing_modules.facilities.repository import FacilityBillingRepository

logger = get_logger("modules.facilities.service")


class FacilityBillingService:
    """
    Generates billing previews and deltas for a client.

    Contract:
        Every public method takes ``client_id`` and ``company_id``; the pair
        must identify an existing client of that company.

    Guarantees:
        - Reads happen once per preview, up front; engines do no I/O.
        - ``generate_delta`` resolves both months independently; with an
          executor they run concurrently, and results do not depend on
          which finishes first.
    """

    def __init__(
        self,
        repository: FacilityBillingRepository,
        config: FacilityBillingConfig | None = None,
        clock: Clock | None = None,
        executor: Executor | None = None,
    ):
        self._repository = repository
        self._config = config or FacilityBillingConfig()
        self._clock = clock or SystemClock()
        self._executor = executor

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def generate_billing_preview(
        self,
        client_id: UUID,
        company_id: UUID,
        year: int,
        month: int,
    ) -> BillingPreview:
        """
        Resolve a client-month into an invoice preview.

        Args:
            client_id: Client to preview.
            company_id: Tenant the client must belong to.
            year: Calendar year.
            month: Calendar month, 1-12.

        Returns:
            BillingPreview with one recurring line per facility, followed by
            billable service lines.

        Raises:
            InvalidBillingPeriodError: If year/month are not a valid period.
            ClientNotFoundError: If the client is missing or foreign.
            DataIntegrityError: If stored records are inconsistent.
        """
        period = BillingPeriod.of(year, month)

        with LogContext.bind(client_id=str(client_id), company_id=str(company_id)):
            logger.info("billing_preview_started", extra={"period": str(period)})
            t0 = time.monotonic()
            try:
                preview = self._build_preview(client_id, company_id, period)
            except FacilityBillingError as exc:
                logger.warning("billing_preview_failed", extra={
                    "period": str(period),
                    "error_code": exc.code,
                    "error": str(exc),
                })
                raise

            logger.info("billing_preview_completed", extra={
                "period": str(period),
                "line_count": len(preview.line_items),
                "active_facility_count": preview.active_facility_count,
                "total_facility_count": preview.total_facility_count,
                "subtotal": str(preview.subtotal),
                "tax_amount": str(preview.tax_amount),
                "total": str(preview.total),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            return preview

    def generate_current_preview(self, client_id: UUID, company_id: UUID) -> BillingPreview:
        """Preview the clock's current month."""
        period = BillingPeriod.current(self._clock)
        return self.generate_billing_preview(client_id, company_id, period.year, period.month)

    def _build_preview(
        self,
        client_id: UUID,
        company_id: UUID,
        period: BillingPeriod,
    ) -> BillingPreview:
        client = self._repository.get_client(client_id, company_id)
        if client is None:
            raise ClientNotFoundError(str(client_id))

        facilities = list(self._repository.list_facility_profiles(client_id))
        facility_ids = [f.id for f in facilities]
        locations = self._repository.list_locations(client_id)
        seasonal_rules = [
            rule for rule in self._repository.list_seasonal_rules(facility_ids)
            if rule.is_active
        ]
        overrides = self._repository.list_monthly_overrides(
            facility_ids, period.year, period.month,
        )
        ad_hoc_items = self._repository.list_service_line_items(
            client_id, period.year, period.month,
        )

        rules_by_facility: dict[UUID, list] = {}
        for rule in seasonal_rules:
            rules_by_facility.setdefault(rule.facility_profile_id, []).append(rule)

        states = [
            resolve_effective_state(
                facility,
                rules_by_facility.get(facility.id, ()),
                overrides,
                period.year,
                period.month,
            )
            for facility in facilities
        ]

        line_items = build_line_items(
            client,
            facilities,
            states,
            ad_hoc_items,
            locations,
            period.year,
            period.month,
            billable_statuses=self._config.billable_service_statuses,
        )
        totals = aggregate(client, line_items)
        explanation = build_explanation(line_items, overrides)
        return assemble_preview(client, period, line_items, totals, explanation)

    # ------------------------------------------------------------------
    # Deltas
    # ------------------------------------------------------------------

    def generate_delta(
        self,
        client_id: UUID,
        company_id: UUID,
        year: int,
        month: int,
    ) -> DeltaReport:
        """
        Compare a client-month with the month before it.

        January compares against December of the previous year.  The first
        supported month (year 1, January) has no predecessor and is rejected.

        Raises:
            InvalidBillingPeriodError: If year/month is invalid or has no
                previous month.
            Otherwise the same as ``generate_billing_preview``, for either month.
        """
        current_period = BillingPeriod.of(year, month)
        previous_period = current_period.previous()

        with LogContext.bind(client_id=str(client_id), company_id=str(company_id)):
            logger.info("billing_delta_started", extra={
                "current_period": str(current_period),
                "previous_period": str(previous_period),
            })

            current, previous = self._run_pair(
                client_id, company_id, current_period, previous_period,
            )
            report = compare_previews(current, previous)

            logger.info("billing_delta_completed", extra={
                "current_period": str(current_period),
                "previous_period": str(previous_period),
                "total_delta": str(report.total_delta),
                "changed_count": report.changed_count,
                "unchanged_count": report.unchanged_count,
            })
            return report

    def _run_pair(
        self,
        client_id: UUID,
        company_id: UUID,
        current_period: BillingPeriod,
        previous_period: BillingPeriod,
    ) -> tuple[BillingPreview, BillingPreview]:
        executor = self._executor
        owned = False
        if executor is None and self._config.parallel_delta:
            executor = ThreadPoolExecutor(
                max_workers=self._config.delta_workers,
                thread_name_prefix="billing-delta",
            )
            owned = True

        if executor is None:
            return (
                self.generate_billing_preview(
                    client_id, company_id, current_period.year, current_period.month,
                ),
                self.generate_billing_preview(
                    client_id, company_id, previous_period.year, previous_period.month,
                ),
            )

        try:
            # copy_context carries LogContext fields into worker threads
            futures = [
                executor.submit(
                    contextvars.copy_context().run,
                    self.generate_billing_preview,
                    client_id, company_id, period.year, period.month,
                )
                for period in (current_period, previous_period)
            ]
            return futures[0].result(), futures[1].result()
        finally:
            if owned:
                executor.shutdown(wait=True)
