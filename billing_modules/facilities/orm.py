"""
Facility Billing ORM Models (``billing_modules.facilities.orm``).

Responsibility
--------------
SQLAlchemy persistence models for facility billing.  Maps the frozen
domain records in ``billing_kernel.domain.records`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and the domain records.  MUST NOT be imported by ``billing_engines``.

Invariants enforced
-------------------
* One facility profile per location (uq_facility_profiles_location_id).
* One monthly override per (facility, year, month)
  (uq_facility_monthly_overrides_period).
* Month and weekday lists are stored as JSON arrays.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.records import (
    BillingDisplayMode,
    Client,
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


# ---------------------------------------------------------------------------
# 1. ClientModel
# ---------------------------------------------------------------------------


class ClientModel(TrackedBase):
    """
    ORM model for billing clients.

    Guarantees:
        - company_id scopes the client to one tenant.
        - tax_rate uses Decimal (Numeric(38,9) via type_annotation_map).
    """

    __tablename__ = "billing_clients"

    __table_args__ = (
        Index("idx_billing_clients_company_id", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False)
    billing_display_mode: Mapped[str] = mapped_column(
        String(50), default=BillingDisplayMode.PRE_TAX_ONLY.value
    )
    payment_terms: Mapped[str] = mapped_column(
        String(50), default=PaymentTerms.NET_30.value
    )

    def to_dto(self) -> Client:
        return Client(
            id=self.id,
            company_id=self.company_id,
            name=self.name,
            tax_rate=self.tax_rate,
            tax_exempt=self.tax_exempt,
            billing_display_mode=BillingDisplayMode(self.billing_display_mode),
            payment_terms=PaymentTerms(self.payment_terms),
        )

    @classmethod
    def from_dto(cls, dto: Client, created_by_id: UUID) -> "ClientModel":
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            name=dto.name,
            tax_rate=dto.tax_rate,
            tax_exempt=dto.tax_exempt,
            billing_display_mode=dto.billing_display_mode.value,
            payment_terms=dto.payment_terms.value,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ClientModel {self.name}>"


# ---------------------------------------------------------------------------
# 2. LocationModel
# ---------------------------------------------------------------------------


class LocationModel(TrackedBase):
    """ORM model for client locations."""

    __tablename__ = "billing_locations"

    __table_args__ = (
        Index("idx_billing_locations_client_id", "client_id"),
    )

    client_id: Mapped[UUID] = mapped_column(ForeignKey("billing_clients.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self) -> Location:
        return Location(
            id=self.id,
            client_id=self.client_id,
            name=self.name,
            address=self.address,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto: Location, created_by_id: UUID) -> "LocationModel":
        return cls(
            id=dto.id,
            client_id=dto.client_id,
            name=dto.name,
            address=dto.address,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<LocationModel {self.name}>"


# ---------------------------------------------------------------------------
# 3. FacilityProfileModel
# ---------------------------------------------------------------------------


class FacilityProfileModel(TrackedBase):
    """
    ORM model for facility contracts.

    Maps to the ``FacilityProfile`` frozen dataclass.  Enum fields are
    stored as their string values.

    Guarantees:
        - At most one profile per location.
        - default_monthly_rate is non-negative (ck_facility_profiles_rate).
    """

    __tablename__ = "facility_profiles"

    __table_args__ = (
        UniqueConstraint("location_id", name="uq_facility_profiles_location_id"),
        CheckConstraint("default_monthly_rate >= 0", name="ck_facility_profiles_rate"),
        Index("idx_facility_profiles_client_id", "client_id"),
        Index("idx_facility_profiles_status", "status"),
    )

    client_id: Mapped[UUID] = mapped_column(ForeignKey("billing_clients.id"), nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("billing_locations.id"), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    default_monthly_rate: Mapped[Decimal] = mapped_column(nullable=False)
    rate_type: Mapped[str] = mapped_column(String(50), default=RateType.FLAT_MONTHLY.value)
    tax_behavior: Mapped[str] = mapped_column(
        String(50), default=TaxBehavior.INHERIT_CLIENT.value
    )
    status: Mapped[str] = mapped_column(String(50), default=FacilityStatus.ACTIVE.value)
    go_live_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pause_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pause_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    seasonal_rules_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    normal_days_of_week: Mapped[list[int]] = mapped_column(JSON, default=list)
    normal_frequency_per_week: Mapped[int] = mapped_column(default=0)
    sort_order: Mapped[int] = mapped_column(default=0)

    def to_dto(self) -> FacilityProfile:
        return FacilityProfile(
            id=self.id,
            client_id=self.client_id,
            location_id=self.location_id,
            default_monthly_rate=self.default_monthly_rate,
            status=FacilityStatus(self.status),
            category=self.category,
            rate_type=RateType(self.rate_type),
            tax_behavior=TaxBehavior(self.tax_behavior),
            go_live_date=self.go_live_date,
            pause_start_date=self.pause_start_date,
            pause_end_date=self.pause_end_date,
            seasonal_rules_enabled=self.seasonal_rules_enabled,
            normal_days_of_week=tuple(self.normal_days_of_week or ()),
            normal_frequency_per_week=self.normal_frequency_per_week,
            sort_order=self.sort_order,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: FacilityProfile, created_by_id: UUID) -> "FacilityProfileModel":
        return cls(
            id=dto.id,
            client_id=dto.client_id,
            location_id=dto.location_id,
            category=dto.category,
            default_monthly_rate=dto.default_monthly_rate,
            rate_type=dto.rate_type.value,
            tax_behavior=dto.tax_behavior.value,
            status=dto.status.value,
            go_live_date=dto.go_live_date,
            pause_start_date=dto.pause_start_date,
            pause_end_date=dto.pause_end_date,
            seasonal_rules_enabled=dto.seasonal_rules_enabled,
            normal_days_of_week=list(dto.normal_days_of_week),
            normal_frequency_per_week=dto.normal_frequency_per_week,
            sort_order=dto.sort_order,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<FacilityProfileModel {self.id} [{self.status}]>"


# ---------------------------------------------------------------------------
# 4. SeasonalRuleModel
# ---------------------------------------------------------------------------


class SeasonalRuleModel(TrackedBase):
    """
    ORM model for recurring month-of-year rules.

    Superseded rules are deactivated, never deleted.
    """

    __tablename__ = "facility_seasonal_rules"

    __table_args__ = (
        Index("idx_facility_seasonal_rules_profile", "facility_profile_id", "is_active"),
    )

    facility_profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("facility_profiles.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    active_months: Mapped[list[int]] = mapped_column(JSON, default=list)
    paused_months: Mapped[list[int]] = mapped_column(JSON, default=list)
    effective_year_start: Mapped[int | None] = mapped_column(nullable=True)
    effective_year_end: Mapped[int | None] = mapped_column(nullable=True)
    override_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    override_frequency: Mapped[int | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> SeasonalRule:
        return SeasonalRule(
            id=self.id,
            facility_profile_id=self.facility_profile_id,
            is_active=self.is_active,
            active_months=tuple(self.active_months or ()),
            paused_months=tuple(self.paused_months or ()),
            effective_year_start=self.effective_year_start,
            effective_year_end=self.effective_year_end,
            override_rate=self.override_rate,
            override_frequency=self.override_frequency,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: SeasonalRule, created_by_id: UUID) -> "SeasonalRuleModel":
        return cls(
            id=dto.id,
            facility_profile_id=dto.facility_profile_id,
            is_active=dto.is_active,
            active_months=list(dto.active_months),
            paused_months=list(dto.paused_months),
            effective_year_start=dto.effective_year_start,
            effective_year_end=dto.effective_year_end,
            override_rate=dto.override_rate,
            override_frequency=dto.override_frequency,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<SeasonalRuleModel {self.facility_profile_id} [{state}]>"


# ---------------------------------------------------------------------------
# 5. MonthlyOverrideModel
# ---------------------------------------------------------------------------


class MonthlyOverrideModel(TrackedBase):
    """
    ORM model for one-off monthly overrides.

    Guarantees:
        - Unique per (facility_profile_id, year, month).
        - month is 1-12 (ck_facility_monthly_overrides_month).
    """

    __tablename__ = "facility_monthly_overrides"

    __table_args__ = (
        UniqueConstraint(
            "facility_profile_id", "year", "month",
            name="uq_facility_monthly_overrides_period",
        ),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_facility_monthly_overrides_month"),
        Index("idx_facility_monthly_overrides_period", "year", "month"),
    )

    facility_profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("facility_profiles.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(nullable=False)
    month: Mapped[int] = mapped_column(nullable=False)
    override_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    override_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    override_frequency: Mapped[int | None] = mapped_column(nullable=True)
    override_days_of_week: Mapped[list[int]] = mapped_column(JSON, default=list)
    pause_start_day: Mapped[int | None] = mapped_column(nullable=True)
    pause_end_day: Mapped[int | None] = mapped_column(nullable=True)
    override_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> MonthlyOverride:
        return MonthlyOverride(
            id=self.id,
            facility_profile_id=self.facility_profile_id,
            year=self.year,
            month=self.month,
            override_status=(
                OverrideStatus(self.override_status) if self.override_status else None
            ),
            override_rate=self.override_rate,
            override_frequency=self.override_frequency,
            override_days_of_week=tuple(self.override_days_of_week or ()),
            pause_start_day=self.pause_start_day,
            pause_end_day=self.pause_end_day,
            override_notes=self.override_notes,
        )

    @classmethod
    def from_dto(cls, dto: MonthlyOverride, created_by_id: UUID) -> "MonthlyOverrideModel":
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: MonthlyOverride) -> None:
        """Copy every override field from ``dto``; the row id is kept."""
        self.facility_profile_id = dto.facility_profile_id
        self.year = dto.year
        self.month = dto.month
        self.override_status = dto.override_status.value if dto.override_status else None
        self.override_rate = dto.override_rate
        self.override_frequency = dto.override_frequency
        self.override_days_of_week = list(dto.override_days_of_week)
        self.pause_start_day = dto.pause_start_day
        self.pause_end_day = dto.pause_end_day
        self.override_notes = dto.override_notes

    def __repr__(self) -> str:
        return (
            f"<MonthlyOverrideModel {self.facility_profile_id} "
            f"{self.year}-{self.month:02d}>"
        )


# ---------------------------------------------------------------------------
# 6. ServiceLineItemModel
# ---------------------------------------------------------------------------


class ServiceLineItemModel(TrackedBase):
    """ORM model for ad-hoc service charges."""

    __tablename__ = "service_line_items"

    __table_args__ = (
        Index("idx_service_line_items_client_period", "client_id", "year", "month"),
    )

    client_id: Mapped[UUID] = mapped_column(ForeignKey("billing_clients.id"), nullable=False)
    facility_profile_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("facility_profiles.id"), nullable=True
    )
    year: Mapped[int] = mapped_column(nullable=False)
    month: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    unit_rate: Mapped[Decimal] = mapped_column(nullable=False)
    tax_behavior: Mapped[str] = mapped_column(
        String(50), default=TaxBehavior.INHERIT_CLIENT.value
    )
    status: Mapped[str] = mapped_column(String(50), default=ServiceItemStatus.PENDING.value)
    performed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> ServiceLineItem:
        return ServiceLineItem(
            id=self.id,
            client_id=self.client_id,
            year=self.year,
            month=self.month,
            description=self.description,
            unit_rate=self.unit_rate,
            quantity=self.quantity,
            facility_profile_id=self.facility_profile_id,
            tax_behavior=TaxBehavior(self.tax_behavior),
            status=ServiceItemStatus(self.status),
            performed_date=self.performed_date,
            notes=self.notes,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: ServiceLineItem, created_by_id: UUID) -> "ServiceLineItemModel":
        return cls(
            id=dto.id,
            client_id=dto.client_id,
            facility_profile_id=dto.facility_profile_id,
            year=dto.year,
            month=dto.month,
            description=dto.description,
            quantity=dto.quantity,
            unit_rate=dto.unit_rate,
            tax_behavior=dto.tax_behavior.value,
            status=dto.status.value,
            performed_date=dto.performed_date,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ServiceLineItemModel {self.description} {self.year}-{self.month:02d}>"
