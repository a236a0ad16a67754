"""
Tests for FacilityBillingService against an in-memory repository.

Covers the preview contract (validation order, tenant isolation, ordering,
idempotence, data-integrity failures) and the delta contract (year
boundary, round trip, parallel execution).
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.records import (
    EffectiveStatus,
    OverrideStatus,
    ServiceItemStatus,
)
from billing_kernel.exceptions import (
    ClientNotFoundError,
    DuplicateOverrideError,
    InvalidBillingPeriodError,
    LocationNotFoundError,
    NotFoundError,
)
from billing_engines.delta import ChangeType
from billing_modules.facilities.config import FacilityBillingConfig
from billing_modules.facilities.service import FacilityBillingService


@pytest.fixture
def service(repository, deterministic_clock):
    return FacilityBillingService(repository, clock=deterministic_clock)


class TestPreviewValidation:

    def test_invalid_month_rejected_before_any_lookup(self, service, repository, single_facility, company_id):
        client, _, _ = single_facility
        with pytest.raises(InvalidBillingPeriodError):
            service.generate_billing_preview(client.id, company_id, 2026, 13)
        assert repository.calls == []

    def test_wrong_type_rejected(self, service, repository, single_facility, company_id):
        client, _, _ = single_facility
        with pytest.raises(InvalidBillingPeriodError):
            service.generate_billing_preview(client.id, company_id, "2026", 3)
        assert repository.calls == []

    def test_unknown_client(self, service, company_id):
        with pytest.raises(ClientNotFoundError):
            service.generate_billing_preview(uuid4(), company_id, 2026, 3)

    def test_foreign_company_reported_as_not_found(self, service, single_facility):
        client, _, _ = single_facility
        with pytest.raises(NotFoundError) as exc_info:
            service.generate_billing_preview(client.id, uuid4(), 2026, 3)
        assert exc_info.value.code == "CLIENT_NOT_FOUND"
        assert exc_info.value.client_id == str(client.id)


class TestPreviewScenarios:

    def test_single_active_facility(self, service, single_facility, company_id):
        client, _, facility = single_facility
        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)

        assert preview.month_label == "March"
        assert preview.client_name == client.name
        line = preview.line_items[0]
        assert line.facility_profile_id == facility.id
        assert line.effective_rate == Decimal("1000.00")
        assert line.line_item_total == Decimal("1000.00")
        assert line.line_item_tax == Decimal("82.50")
        assert preview.subtotal == Decimal("1000.00")
        assert preview.tax_amount == Decimal("82.50")
        assert preview.total == Decimal("1082.50")
        assert preview.active_facility_count == 1
        assert preview.total_facility_count == 1

    def test_paused_override_month(self, service, repository, single_facility, company_id, make_override):
        client, _, facility = single_facility
        repository.overrides.append(
            make_override(facility, 2026, 10, override_status=OverrideStatus.PAUSED)
        )
        preview = service.generate_billing_preview(client.id, company_id, 2026, 10)

        line = preview.line_items[0]
        assert line.effective_status == EffectiveStatus.PAUSED
        assert not line.included_in_total
        assert line.line_item_total == Decimal("0.00")
        assert preview.subtotal == Decimal("0.00")
        assert preview.tax_amount == Decimal("0.00")
        assert preview.explanation.paused_facilities == ("Main Office",)
        assert preview.explanation.overrides == ("Main Office: status to PAUSED",)

    def test_tax_exempt_client(self, service, repository, make_client, make_location, make_facility, company_id):
        client = make_client(tax_exempt=True)
        location = make_location(client)
        repository.clients.append(client)
        repository.locations.append(location)
        repository.facilities.append(make_facility(client, location))

        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert preview.tax_amount == Decimal("0.00")
        assert preview.total == preview.subtotal

    def test_facilities_sorted_by_sort_order_then_creation(
        self, service, repository, make_client, make_location, make_facility, company_id,
    ):
        client = make_client()
        repository.clients.append(client)
        names = ["Third", "First", "Second"]
        sort_orders = [2, 1, 1]
        for name, sort_order in zip(names, sort_orders):
            location = make_location(client, name)
            repository.locations.append(location)
            repository.facilities.append(make_facility(client, location, sort_order=sort_order))

        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert [li.location_name for li in preview.line_items] == ["First", "Second", "Third"]

    def test_line_order_is_repository_order(
        self, service, repository, make_client, make_location, make_facility, company_id, monkeypatch,
    ):
        client = make_client()
        repository.clients.append(client)
        for name in ("A", "B", "C"):
            location = make_location(client, name)
            repository.locations.append(location)
            repository.facilities.append(make_facility(client, location))
        reversed_facilities = list(reversed(repository.facilities))
        monkeypatch.setattr(repository, "list_facility_profiles", lambda client_id: reversed_facilities)

        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert [li.location_name for li in preview.line_items] == ["C", "B", "A"]

    def test_service_items_included(self, service, repository, single_facility, company_id, make_service_item):
        client, _, facility = single_facility
        repository.service_items.extend([
            make_service_item(client, 2026, 3, facility_profile_id=facility.id),
            make_service_item(client, 2026, 3, status=ServiceItemStatus.CANCELLED),
        ])
        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert len(preview.service_lines) == 1
        assert preview.service_subtotal == Decimal("300.00")
        assert preview.facility_subtotal == Decimal("1000.00")
        assert preview.total == Decimal("1407.25")

    def test_billable_statuses_from_config(
        self, repository, single_facility, company_id, make_service_item, deterministic_clock,
    ):
        client, _, _ = single_facility
        repository.service_items.append(make_service_item(client, 2026, 3))
        service = FacilityBillingService(
            repository,
            config=FacilityBillingConfig(billable_service_statuses=frozenset({"completed"})),
            clock=deterministic_clock,
        )
        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert preview.service_lines == ()

    def test_inactive_rules_filtered(self, service, repository, make_client, make_location, make_facility, make_rule, company_id):
        client = make_client()
        location = make_location(client)
        facility = make_facility(client, location, seasonal_rules_enabled=True)
        repository.clients.append(client)
        repository.locations.append(location)
        repository.facilities.append(facility)
        repository.seasonal_rules.extend([
            make_rule(facility, paused_months=(3,), is_active=False),
            make_rule(facility, paused_months=(1, 2)),
        ])
        preview = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert preview.line_items[0].effective_status == EffectiveStatus.ACTIVE

        preview = service.generate_billing_preview(client.id, company_id, 2026, 2)
        assert preview.line_items[0].effective_status == EffectiveStatus.SEASONAL_PAUSED
        assert preview.explanation.seasonally_paused == ("Main Office",)

    def test_idempotent(self, service, repository, single_facility, company_id, make_override, make_service_item):
        client, _, facility = single_facility
        repository.overrides.append(make_override(facility, 2026, 3, override_rate=Decimal("1234.56")))
        repository.service_items.append(make_service_item(client, 2026, 3))

        first = service.generate_billing_preview(client.id, company_id, 2026, 3)
        second = service.generate_billing_preview(client.id, company_id, 2026, 3)
        assert first == second
        assert repr(first) == repr(second)

    def test_current_preview_uses_clock(self, service, single_facility, company_id):
        client, _, _ = single_facility
        preview = service.generate_current_preview(client.id, company_id)
        assert (preview.year, preview.month) == (2026, 3)


class TestPreviewDataIntegrity:

    def test_missing_location_fails_whole_preview(
        self, service, repository, single_facility, company_id, make_location, make_facility,
    ):
        client, _, _ = single_facility
        orphan_location = make_location(client, "Ghost")
        repository.facilities.append(make_facility(client, orphan_location))

        with pytest.raises(LocationNotFoundError):
            service.generate_billing_preview(client.id, company_id, 2026, 3)

    def test_duplicate_override_fails(self, service, repository, single_facility, company_id, make_override):
        client, _, facility = single_facility
        repository.overrides.extend([
            make_override(facility, 2026, 3, override_status=OverrideStatus.PAUSED),
            make_override(facility, 2026, 3, override_status=OverrideStatus.ACTIVE),
        ])
        with pytest.raises(DuplicateOverrideError):
            service.generate_billing_preview(client.id, company_id, 2026, 3)

    def test_failure_is_logged(self, service, company_id, captured_logs):
        with pytest.raises(ClientNotFoundError):
            service.generate_billing_preview(uuid4(), company_id, 2026, 3)
        failures = [r for r in captured_logs() if r["message"] == "billing_preview_failed"]
        assert failures
        assert failures[0]["error_code"] == "CLIENT_NOT_FOUND"
        assert failures[0]["company_id"] == str(company_id)


class TestDelta:

    def test_november_vs_paused_october(self, service, repository, single_facility, company_id, make_override):
        client, _, facility = single_facility
        repository.overrides.append(
            make_override(facility, 2026, 10, override_status=OverrideStatus.PAUSED)
        )
        report = service.generate_delta(client.id, company_id, 2026, 11)

        assert report.facilities[0].change_type == ChangeType.CHANGED
        assert report.facilities[0].total_delta == Decimal("1000.00")
        assert report.previous_month.month_label == "October"

    def test_january_compares_with_previous_december(
        self, service, repository, single_facility, company_id, make_override,
    ):
        client, _, facility = single_facility
        repository.overrides.append(
            make_override(facility, 2025, 12, override_rate=Decimal("800.00"))
        )
        report = service.generate_delta(client.id, company_id, 2026, 1)

        assert (report.previous_month.year, report.previous_month.month) == (2025, 12)
        january = service.generate_billing_preview(client.id, company_id, 2026, 1)
        december = service.generate_billing_preview(client.id, company_id, 2025, 12)
        assert report.total_delta == january.total - december.total
        assert report.total_delta == Decimal("216.50")

    def test_invalid_month_rejected(self, service, single_facility, company_id):
        client, _, _ = single_facility
        with pytest.raises(InvalidBillingPeriodError):
            service.generate_delta(client.id, company_id, 2026, 0)

    def test_first_supported_month_has_no_delta(self, service, repository, single_facility, company_id):
        client, _, _ = single_facility
        preview = service.generate_billing_preview(client.id, company_id, 1, 1)
        assert preview.total == Decimal("1082.50")

        repository.calls.clear()
        with pytest.raises(InvalidBillingPeriodError) as exc_info:
            service.generate_delta(client.id, company_id, 1, 1)
        assert (exc_info.value.year, exc_info.value.month) == (1, 1)
        assert repository.calls == []

    def test_injected_executor(self, repository, single_facility, company_id, make_override, deterministic_clock):
        client, _, facility = single_facility
        repository.overrides.append(
            make_override(facility, 2026, 10, override_status=OverrideStatus.PAUSED)
        )
        sequential = FacilityBillingService(repository, clock=deterministic_clock)
        with ThreadPoolExecutor(max_workers=2) as executor:
            parallel = FacilityBillingService(repository, clock=deterministic_clock, executor=executor)
            parallel_report = parallel.generate_delta(client.id, company_id, 2026, 11)

        assert parallel_report == sequential.generate_delta(client.id, company_id, 2026, 11)

    def test_parallel_delta_from_config(self, repository, single_facility, company_id, deterministic_clock):
        client, _, _ = single_facility
        service = FacilityBillingService(
            repository,
            config=FacilityBillingConfig(parallel_delta=True),
            clock=deterministic_clock,
        )
        report = service.generate_delta(client.id, company_id, 2026, 3)
        assert report.unchanged_count == 1

    def test_delta_logs_carry_client_context(self, service, single_facility, company_id, captured_logs):
        client, _, _ = single_facility
        service.generate_delta(client.id, company_id, 2026, 3)
        completed = [r for r in captured_logs() if r["message"] == "billing_delta_completed"]
        assert completed
        assert completed[0]["client_id"] == str(client.id)
