"""
Pytest fixtures for the facility billing test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- Record factories (clients, locations, facilities, rules, overrides,
  ad-hoc items)
- An in-memory repository for service tests
- SQLite in-memory sessions for ORM and repository tests
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.records import (
    Client,
    FacilityProfile,
    FacilityStatus,
    Location,
    MonthlyOverride,
    SeasonalRule,
    ServiceLineItem,
    TaxBehavior,
)
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Test actor and tenant IDs for all test operations
TEST_ACTOR_ID = uuid4()
TEST_COMPANY_ID = uuid4()

_BASE_CREATED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.generate_billing_preview(...)
            logs = captured_logs()
            assert any(r["message"] == "billing_preview_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Basic fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def company_id() -> UUID:
    return TEST_COMPANY_ID


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2026-03-15 12:00 UTC."""
    return DeterministicClock(datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc))


# =============================================================================
# Record factories
# =============================================================================


@pytest.fixture
def make_client(company_id):
    def _make(**overrides) -> Client:
        values = dict(
            id=uuid4(),
            company_id=company_id,
            name="Harbor Medical Group",
            tax_rate=Decimal("0.0825"),
            tax_exempt=False,
        )
        values.update(overrides)
        return Client(**values)
    return _make


@pytest.fixture
def make_location():
    def _make(client: Client, name: str = "Main Office", **overrides) -> Location:
        values = dict(id=uuid4(), client_id=client.id, name=name, address="100 Main St")
        values.update(overrides)
        return Location(**values)
    return _make


@pytest.fixture
def make_facility():
    counter = {"n": 0}

    def _make(client: Client, location: Location, **overrides) -> FacilityProfile:
        counter["n"] += 1
        values = dict(
            id=uuid4(),
            client_id=client.id,
            location_id=location.id,
            default_monthly_rate=Decimal("1000.00"),
            status=FacilityStatus.ACTIVE,
            category="Medical Office",
            tax_behavior=TaxBehavior.INHERIT_CLIENT,
            normal_days_of_week=(1, 3, 5),
            normal_frequency_per_week=3,
            sort_order=0,
            created_at=_BASE_CREATED_AT + timedelta(minutes=counter["n"]),
        )
        values.update(overrides)
        return FacilityProfile(**values)
    return _make


@pytest.fixture
def make_override():
    def _make(facility: FacilityProfile, year: int, month: int, **overrides) -> MonthlyOverride:
        values = dict(id=uuid4(), facility_profile_id=facility.id, year=year, month=month)
        values.update(overrides)
        return MonthlyOverride(**values)
    return _make


@pytest.fixture
def make_rule():
    def _make(facility: FacilityProfile, **overrides) -> SeasonalRule:
        values = dict(id=uuid4(), facility_profile_id=facility.id)
        values.update(overrides)
        return SeasonalRule(**values)
    return _make


@pytest.fixture
def make_service_item():
    def _make(client: Client, year: int, month: int, **overrides) -> ServiceLineItem:
        values = dict(
            id=uuid4(),
            client_id=client.id,
            year=year,
            month=month,
            description="Carpet extraction",
            unit_rate=Decimal("150.00"),
            quantity=Decimal("2"),
        )
        values.update(overrides)
        return ServiceLineItem(**values)
    return _make


# =============================================================================
# In-memory repository
# =============================================================================


@dataclass
class InMemoryFacilityBillingRepository:
    """
    Dict-backed repository with the same read contract as the SQL one.

    ``calls`` records every read, in order.
    """

    clients: list[Client] = field(default_factory=list)
    locations: list[Location] = field(default_factory=list)
    facilities: list[FacilityProfile] = field(default_factory=list)
    seasonal_rules: list[SeasonalRule] = field(default_factory=list)
    overrides: list[MonthlyOverride] = field(default_factory=list)
    service_items: list[ServiceLineItem] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)

    def get_client(self, client_id, company_id):
        self.calls.append("get_client")
        for client in self.clients:
            if client.id == client_id and client.company_id == company_id:
                return client
        return None

    def list_facility_profiles(self, client_id):
        self.calls.append("list_facility_profiles")
        matching = [f for f in self.facilities if f.client_id == client_id]
        return sorted(matching, key=lambda f: (f.sort_order, f.created_at))

    def list_locations(self, client_id):
        self.calls.append("list_locations")
        return [loc for loc in self.locations if loc.client_id == client_id]

    def list_seasonal_rules(self, facility_profile_ids):
        self.calls.append("list_seasonal_rules")
        ids = set(facility_profile_ids)
        return [r for r in self.seasonal_rules if r.facility_profile_id in ids and r.is_active]

    def list_monthly_overrides(self, facility_profile_ids, year, month):
        self.calls.append("list_monthly_overrides")
        ids = set(facility_profile_ids)
        return [
            o for o in self.overrides
            if o.facility_profile_id in ids and o.year == year and o.month == month
        ]

    def list_service_line_items(self, client_id, year, month):
        self.calls.append("list_service_line_items")
        return [
            i for i in self.service_items
            if i.client_id == client_id and i.year == year and i.month == month
        ]


@pytest.fixture
def repository() -> InMemoryFacilityBillingRepository:
    return InMemoryFacilityBillingRepository()


@pytest.fixture
def single_facility(repository, make_client, make_location, make_facility):
    """
    One client (8.25% tax) with one ACTIVE $1000/month facility.

    Returns (client, location, facility); all three are in ``repository``.
    """
    client = make_client()
    location = make_location(client)
    facility = make_facility(client, location)
    repository.clients.append(client)
    repository.locations.append(location)
    repository.facilities.append(facility)
    return client, location, facility


# =============================================================================
# SQLite fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all billing tables."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()
