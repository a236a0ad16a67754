"""
Tests for the line-item builder and per-line tax resolution.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.records import (
    EffectiveStatus,
    OverrideStatus,
    ServiceItemStatus,
    TaxBehavior,
)
from billing_kernel.exceptions import DataIntegrityError, LocationNotFoundError
from billing_engines.line_items import (
    LineItemKind,
    build_line_items,
    calculate_line_tax,
    resolve_taxability,
)
from billing_engines.resolution import resolve_effective_state


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def location(client, make_location):
    return make_location(client)


@pytest.fixture
def facility(client, location, make_facility):
    return make_facility(client, location)


def _states(facilities, overrides, year, month):
    return [resolve_effective_state(f, [], overrides, year, month) for f in facilities]


class TestResolveTaxability:

    @pytest.mark.parametrize("behavior, exempt, expected", [
        (TaxBehavior.INHERIT_CLIENT, False, True),
        (TaxBehavior.INHERIT_CLIENT, True, False),
        (TaxBehavior.PRE_TAX, False, True),
        (TaxBehavior.PRE_TAX, True, False),
        (TaxBehavior.TAXABLE, False, True),
        (TaxBehavior.TAXABLE, True, True),
        (TaxBehavior.EXEMPT, False, False),
        (TaxBehavior.EXEMPT, True, False),
        (TaxBehavior.TAX_INCLUDED, False, False),
    ])
    def test_matrix(self, make_client, behavior, exempt, expected):
        client = make_client(tax_exempt=exempt)
        assert resolve_taxability(client, behavior) is expected


class TestCalculateLineTax:

    def test_rounds_half_up(self):
        # 10.10 * 0.0825 = 0.83325
        assert calculate_line_tax(Decimal("10.10"), Decimal("0.0825"), True) == Decimal("0.83")
        # 10.30 * 0.0825 = 0.84975
        assert calculate_line_tax(Decimal("10.30"), Decimal("0.0825"), True) == Decimal("0.85")

    def test_not_taxable(self):
        assert calculate_line_tax(Decimal("1000"), Decimal("0.0825"), False) == Decimal("0.00")


class TestRecurringLines:

    def test_active_facility_line(self, client, location, facility):
        lines = build_line_items(
            client, [facility], _states([facility], [], 2026, 3), [], [location], 2026, 3,
        )
        assert len(lines) == 1
        line = lines[0]
        assert line.kind == LineItemKind.RECURRING
        assert line.facility_profile_id == facility.id
        assert line.location_name == "Main Office"
        assert line.category == "Medical Office"
        assert line.effective_rate == Decimal("1000.00")
        assert line.effective_frequency == 3
        assert line.included_in_total
        assert line.line_item_total == Decimal("1000.00")
        assert line.is_taxable
        assert line.line_item_tax == Decimal("82.50")

    def test_excluded_facility_still_emits_zero_line(
        self, client, location, facility, make_override,
    ):
        override = make_override(facility, 2026, 10, override_status=OverrideStatus.PAUSED)
        lines = build_line_items(
            client, [facility], _states([facility], [override], 2026, 10), [], [location],
            2026, 10,
        )
        assert len(lines) == 1
        assert lines[0].effective_status == EffectiveStatus.PAUSED
        assert not lines[0].included_in_total
        assert lines[0].line_item_total == Decimal("0.00")
        assert lines[0].line_item_tax == Decimal("0.00")
        assert lines[0].is_overridden

    def test_day_range_pause_prorates(self, client, location, facility, make_override):
        # March 2026, Mon/Wed/Fri: 13 scheduled, 9..15 pauses 3 of them
        override = make_override(facility, 2026, 3, pause_start_day=9, pause_end_day=15)
        lines = build_line_items(
            client, [facility], _states([facility], [override], 2026, 3), [], [location],
            2026, 3,
        )
        # 1000 * 10 / 13 = 769.230...
        assert lines[0].line_item_total == Decimal("769.23")
        assert lines[0].is_prorated
        assert (lines[0].scheduled_days, lines[0].active_days) == (13, 10)
        assert lines[0].line_item_tax == Decimal("63.46")

    def test_pause_missing_every_scheduled_day_is_not_prorated(
        self, client, location, make_facility, make_override,
    ):
        # Mondays only; March 1 2026 is a Sunday
        facility = make_facility(client, location, normal_days_of_week=(1,))
        override = make_override(facility, 2026, 3, pause_start_day=1, pause_end_day=1)
        lines = build_line_items(
            client, [facility], _states([facility], [override], 2026, 3), [], [location],
            2026, 3,
        )
        assert lines[0].line_item_total == Decimal("1000.00")
        assert not lines[0].is_prorated
        assert (lines[0].scheduled_days, lines[0].active_days) == (5, 5)

    def test_no_day_range_pause_has_no_day_counts(self, client, location, facility):
        lines = build_line_items(
            client, [facility], _states([facility], [], 2026, 3), [], [location], 2026, 3,
        )
        assert not lines[0].is_prorated
        assert lines[0].scheduled_days is None

    def test_order_follows_facilities(self, client, make_location, make_facility):
        loc_a = make_location(client, "A")
        loc_b = make_location(client, "B")
        fac_b = make_facility(client, loc_b)
        fac_a = make_facility(client, loc_a)
        lines = build_line_items(
            client, [fac_b, fac_a], _states([fac_b, fac_a], [], 2026, 3), [],
            [loc_a, loc_b], 2026, 3,
        )
        assert [li.location_name for li in lines] == ["B", "A"]

    def test_missing_location_raises(self, client, location, facility):
        with pytest.raises(LocationNotFoundError) as exc_info:
            build_line_items(client, [facility], _states([facility], [], 2026, 3), [], [], 2026, 3)
        assert isinstance(exc_info.value, DataIntegrityError)
        assert exc_info.value.location_id == str(facility.location_id)

    def test_length_mismatch_raises(self, client, location, facility):
        with pytest.raises(ValueError, match="same length"):
            build_line_items(client, [facility], [], [], [location], 2026, 3)


class TestServiceLines:

    def test_billable_items_for_month(self, client, location, facility, make_service_item):
        item = make_service_item(client, 2026, 3, facility_profile_id=facility.id)
        lines = build_line_items(
            client, [facility], _states([facility], [], 2026, 3), [item], [location], 2026, 3,
        )
        assert [li.kind for li in lines] == [LineItemKind.RECURRING, LineItemKind.SERVICE]
        service = lines[1]
        assert service.line_item_total == Decimal("300.00")
        assert service.line_item_tax == Decimal("24.75")
        assert service.service_line_item_id == item.id
        assert service.location_name == "Main Office"

    def test_cancelled_and_other_months_skipped(self, client, location, facility, make_service_item):
        items = [
            make_service_item(client, 2026, 3, status=ServiceItemStatus.CANCELLED),
            make_service_item(client, 2026, 4),
            make_service_item(client, 2026, 3, status=ServiceItemStatus.COMPLETED),
        ]
        lines = build_line_items(
            client, [facility], _states([facility], [], 2026, 3), items, [location], 2026, 3,
        )
        assert [li.service_line_item_id for li in lines if li.kind == LineItemKind.SERVICE] == [
            items[2].id
        ]

    def test_configurable_billable_statuses(self, client, make_service_item):
        items = [
            make_service_item(client, 2026, 3, status=ServiceItemStatus.PENDING),
            make_service_item(client, 2026, 3, status=ServiceItemStatus.COMPLETED),
        ]
        lines = build_line_items(
            client, [], [], items, [], 2026, 3,
            billable_statuses={ServiceItemStatus.COMPLETED},
        )
        assert [li.service_line_item_id for li in lines] == [items[1].id]

    def test_unlinked_item_has_no_location(self, client, make_service_item):
        item = make_service_item(client, 2026, 3, facility_profile_id=None)
        lines = build_line_items(client, [], [], [item], [], 2026, 3)
        assert lines[0].location_name is None

    def test_taxable_service_for_exempt_client(self, make_client, make_service_item):
        client = make_client(tax_exempt=True)
        item = make_service_item(client, 2026, 3, tax_behavior=TaxBehavior.TAXABLE)
        lines = build_line_items(client, [], [], [item], [], 2026, 3)
        assert lines[0].line_item_tax == Decimal("24.75")

    def test_quantity_times_rate_rounded(self, client, make_service_item):
        item = make_service_item(
            client, 2026, 3, quantity=Decimal("1.5"), unit_rate=Decimal("33.33"),
        )
        lines = build_line_items(client, [], [], [item], [], 2026, 3)
        # 49.995 rounds half-up
        assert lines[0].line_item_total == Decimal("50.00")

    def test_foreign_id_in_states_rejected(self, client, location, facility, make_facility):
        other = make_facility(client, location)
        with pytest.raises(ValueError):
            build_line_items(
                client, [facility], _states([other], [], 2026, 3), [], [location], 2026, 3,
            )

    def test_unrelated_id_does_not_match(self, client, make_service_item):
        item = make_service_item(client, 2026, 3, facility_profile_id=uuid4())
        lines = build_line_items(client, [], [], [item], [], 2026, 3)
        assert lines[0].location_name is None
        assert lines[0].category is None
