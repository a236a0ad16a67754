"""
Facility Billing Repository (``billing_modules.facilities.repository``).

Responsibility
--------------
The persistence boundary of facility billing.  ``FacilityBillingRepository``
is the read interface the preview service depends on;
``SqlFacilityBillingRepository`` implements it over the SQLAlchemy models in
``orm.py`` and adds the writes used by admin flows.

Architecture position
---------------------
**Modules layer** -- persistence.  Returns frozen domain records, never ORM
instances.

Invariants enforced
-------------------
* Facility profiles are returned ordered by sort_order, then created_at.
* Only active seasonal rules are returned.
* A monthly override is upserted on (facility, year, month), never duplicated.
* A CLOSED facility profile never leaves CLOSED.

Session ownership
-----------------
Built with ``session=``, the caller owns the session and its transaction:
writes flush but never commit.  Built with ``session_factory=``, every call
opens, commits and closes its own session, so one repository can serve
several threads at once.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.domain.records import (
    Client,
    FacilityProfile,
    FacilityStatus,
    Location,
    MonthlyOverride,
    SeasonalRule,
    ServiceLineItem,
)
from billing_kernel.exceptions import FacilityNotFoundError
from billing_kernel.logging_config import get_logger
from billing_modules.facilities.orm import (
    ClientModel,
    FacilityProfileModel,
    LocationModel,
    MonthlyOverrideModel,
    SeasonalRuleModel,
    ServiceLineItemModel,
)

logger = get_logger("modules.facilities.repository")


class FacilityBillingRepository(Protocol):
    """Read access the preview service needs."""

    def get_client(self, client_id: UUID, company_id: UUID) -> Client | None:
        """The client, or None if it does not exist in ``company_id``."""
        ...

    def list_facility_profiles(self, client_id: UUID) -> Sequence[FacilityProfile]:
        """
        Every profile of the client, ordered by sort_order then created_at.

        The service does not re-sort, so this order is the order of the
        recurring line items.
        """
        ...

    def list_locations(self, client_id: UUID) -> Sequence[Location]:
        ...

    def list_seasonal_rules(self, facility_profile_ids: Sequence[UUID]) -> Sequence[SeasonalRule]:
        """Active rules only."""
        ...

    def list_monthly_overrides(
        self, facility_profile_ids: Sequence[UUID], year: int, month: int,
    ) -> Sequence[MonthlyOverride]:
        ...

    def list_service_line_items(
        self, client_id: UUID, year: int, month: int,
    ) -> Sequence[ServiceLineItem]:
        ...


class SqlFacilityBillingRepository:
    """SQLAlchemy implementation of ``FacilityBillingRepository``."""

    def __init__(
        self,
        session: Session | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ):
        if (session is None) == (session_factory is None):
            raise ValueError("Provide exactly one of session or session_factory")
        self._session = session
        self._session_factory = session_factory

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _flush(self, session: Session) -> None:
        if self._session is not None:
            session.flush()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_client(self, client_id: UUID, company_id: UUID) -> Client | None:
        with self._scope() as session:
            model = session.execute(
                select(ClientModel).where(
                    ClientModel.id == client_id,
                    ClientModel.company_id == company_id,
                )
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def list_facility_profiles(self, client_id: UUID) -> list[FacilityProfile]:
        with self._scope() as session:
            models = session.execute(
                select(FacilityProfileModel)
                .where(FacilityProfileModel.client_id == client_id)
                .order_by(
                    FacilityProfileModel.sort_order,
                    FacilityProfileModel.created_at,
                    FacilityProfileModel.id,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    def list_locations(self, client_id: UUID) -> list[Location]:
        with self._scope() as session:
            models = session.execute(
                select(LocationModel).where(LocationModel.client_id == client_id)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def list_seasonal_rules(self, facility_profile_ids: Sequence[UUID]) -> list[SeasonalRule]:
        if not facility_profile_ids:
            return []
        with self._scope() as session:
            models = session.execute(
                select(SeasonalRuleModel)
                .where(
                    SeasonalRuleModel.facility_profile_id.in_(list(facility_profile_ids)),
                    SeasonalRuleModel.is_active.is_(True),
                )
                .order_by(SeasonalRuleModel.created_at, SeasonalRuleModel.id)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def list_monthly_overrides(
        self, facility_profile_ids: Sequence[UUID], year: int, month: int,
    ) -> list[MonthlyOverride]:
        if not facility_profile_ids:
            return []
        with self._scope() as session:
            models = session.execute(
                select(MonthlyOverrideModel).where(
                    MonthlyOverrideModel.facility_profile_id.in_(list(facility_profile_ids)),
                    MonthlyOverrideModel.year == year,
                    MonthlyOverrideModel.month == month,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    def list_service_line_items(
        self, client_id: UUID, year: int, month: int,
    ) -> list[ServiceLineItem]:
        with self._scope() as session:
            models = session.execute(
                select(ServiceLineItemModel)
                .where(
                    ServiceLineItemModel.client_id == client_id,
                    ServiceLineItemModel.year == year,
                    ServiceLineItemModel.month == month,
                )
                .order_by(
                    ServiceLineItemModel.performed_date,
                    ServiceLineItemModel.created_at,
                    ServiceLineItemModel.id,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_monthly_override(
        self, override: MonthlyOverride, actor_id: UUID,
    ) -> MonthlyOverride:
        """
        Create the override for its (facility, year, month), or update the
        existing one in place.  The existing row keeps its id.
        """
        with self._scope() as session:
            existing = session.execute(
                select(MonthlyOverrideModel).where(
                    MonthlyOverrideModel.facility_profile_id == override.facility_profile_id,
                    MonthlyOverrideModel.year == override.year,
                    MonthlyOverrideModel.month == override.month,
                )
            ).scalar_one_or_none()

            if existing is None:
                model = MonthlyOverrideModel.from_dto(override, created_by_id=actor_id)
                session.add(model)
                action = "created"
            else:
                existing.apply_dto(override)
                existing.updated_by_id = actor_id
                model = existing
                action = "updated"

            self._flush(session)
            logger.info("monthly_override_upserted", extra={
                "facility_profile_id": str(override.facility_profile_id),
                "year": override.year,
                "month": override.month,
                "action": action,
            })
            return model.to_dto()

    def add_seasonal_rule(
        self, rule: SeasonalRule, actor_id: UUID, supersede: bool = True,
    ) -> SeasonalRule:
        """
        Store a seasonal rule.  With ``supersede``, the facility's earlier
        active rules are deactivated first.
        """
        with self._scope() as session:
            deactivated = 0
            if supersede and rule.is_active:
                earlier = session.execute(
                    select(SeasonalRuleModel).where(
                        SeasonalRuleModel.facility_profile_id == rule.facility_profile_id,
                        SeasonalRuleModel.is_active.is_(True),
                    )
                ).scalars().all()
                for model in earlier:
                    model.is_active = False
                    model.updated_by_id = actor_id
                deactivated = len(earlier)

            model = SeasonalRuleModel.from_dto(rule, created_by_id=actor_id)
            session.add(model)
            self._flush(session)
            logger.info("seasonal_rule_added", extra={
                "facility_profile_id": str(rule.facility_profile_id),
                "seasonal_rule_id": str(rule.id),
                "superseded_count": deactivated,
            })
            return model.to_dto()

    def transition_facility_status(
        self, facility_profile_id: UUID, new_status: FacilityStatus, actor_id: UUID,
    ) -> FacilityProfile:
        """
        Move a facility profile to ``new_status``.

        Raises:
            FacilityNotFoundError: If the profile does not exist.
            FacilityClosedError: If the profile is CLOSED and new_status is not.
        """
        with self._scope() as session:
            model = session.get(FacilityProfileModel, facility_profile_id)
            if model is None:
                raise FacilityNotFoundError(str(facility_profile_id))

            current = model.to_dto()
            updated = current.transition_to(new_status)
            model.status = updated.status.value
            model.updated_by_id = actor_id
            self._flush(session)
            logger.info("facility_status_transitioned", extra={
                "facility_profile_id": str(facility_profile_id),
                "from_status": current.status.value,
                "to_status": updated.status.value,
            })
            return updated
