"""SQLAlchemy async database models for ghgcalc.

Source tables (activity, fleet, production, footprints, overheads) are the
durable truth. `corporate_reports` is a regenerable cache of their aggregation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class FacilityModel(Base):
    """Physical site of an organization."""

    __tablename__ = "facilities"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    operational_control: Mapped[str] = mapped_column(Text, nullable=False, default="owned")

    # Soft archive; facilities are never hard-deleted
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "operational_control IN ('owned', 'third_party')",
            name="check_facility_operational_control",
        ),
    )


class EmissionFactorModel(Base):
    """Read-only reference factor (kg CO2e per unit of activity)."""

    __tablename__ = "emission_factors"

    factor_id: Mapped[str] = mapped_column(Text, primary_key=True)
    activity_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    value: Mapped[Decimal] = mapped_column(Numeric(18, 8), nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("value >= 0", name="check_factor_value_non_negative"),
        Index("idx_factor_activity_unit", "activity_type", "unit"),
    )


class ActivityEntryModel(Base):
    """Facility utility/fuel consumption record (append-only)."""

    __tablename__ = "facility_activity_data"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    facility_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("facilities.id", ondelete="SET NULL"), index=True
    )

    activity_type: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False)

    reporting_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    reporting_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_activity_quantity_positive"),
        CheckConstraint("scope IN ('Scope 1', 'Scope 2')", name="check_activity_scope"),
        CheckConstraint(
            "reporting_period_end >= reporting_period_start",
            name="check_activity_period",
        ),
        Index(
            "idx_activity_org_period",
            "org_id",
            "reporting_period_start",
            "reporting_period_end",
        ),
    )


class FleetActivityModel(Base):
    """Vehicle activity pre-aggregated to tonnes CO2e at source."""

    __tablename__ = "fleet_activities"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    emissions_tco2e: Mapped[Decimal | None] = mapped_column(Numeric(18, 6))
    # "Scope 1", "Scope 2" or "Scope 3 Cat 6" (grey fleet)
    scope: Mapped[str] = mapped_column(Text, nullable=False)
    activity_date: Mapped[date | None] = mapped_column(Date)
    reporting_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    reporting_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index(
            "idx_fleet_org_scope_period",
            "org_id",
            "scope",
            "reporting_period_start",
            "reporting_period_end",
        ),
    )


class ProductionLogModel(Base):
    """One manufacturing run."""

    __tablename__ = "production_logs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    product_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    facility_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("facilities.id", ondelete="SET NULL")
    )
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    units_produced: Mapped[int | None] = mapped_column(Integer)
    volume: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    unit: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("idx_production_org_date", "org_id", "production_date"),)


class ProductFootprintModel(Base):
    """Per-unit lifecycle footprint of a product (ISO 14067)."""

    __tablename__ = "product_footprints"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    product_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")

    total_ghg_emissions: Mapped[Decimal | None] = mapped_column(Numeric(18, 8))
    # {"breakdown": {"by_scope": {"scope1": .., "scope2": .., "scope3": ..}}}
    aggregated_impacts: Mapped[dict | None] = mapped_column(JSON)

    # Temporal anchoring: facility data and production volumes share this year
    reference_year: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("status IN ('draft', 'completed')", name="check_footprint_status"),
        CheckConstraint(
            "reference_year >= 2000 AND reference_year <= 2100",
            name="check_reference_year_range",
        ),
        Index("idx_footprint_product_status", "product_id", "status", "updated_at"),
    )


class ProductionMixModel(Base):
    """Production share of a footprint allocated to one facility (ISO 14044)."""

    __tablename__ = "production_mix"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    footprint_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("product_footprints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    facility_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    production_share: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    facility_intensity: Mapped[Decimal | None] = mapped_column(Numeric(18, 8))
    data_source_type: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("footprint_id", "facility_id", name="uq_production_mix_footprint_facility"),
        CheckConstraint(
            "production_share >= 0 AND production_share <= 1",
            name="check_production_share_range",
        ),
        CheckConstraint(
            "data_source_type IS NULL OR data_source_type IN ('Primary', 'Secondary_Average')",
            name="check_production_mix_source_type",
        ),
    )


class CorporateReportModel(Base):
    """Cached corporate footprint for one (organization, year)."""

    __tablename__ = "corporate_reports"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="Draft")
    total_emissions: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=0)
    breakdown_json: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("org_id", "year", name="uq_corporate_report_org_year"),
        CheckConstraint("status IN ('Draft', 'Finalized')", name="check_report_status"),
    )


class CorporateOverheadModel(Base):
    """Scope 3 overhead line belonging to a corporate report."""

    __tablename__ = "corporate_overheads"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    report_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("corporate_reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category: Mapped[str] = mapped_column(Text, nullable=False)
    # Set only for marketing materials filed under purchased_services
    material_type: Mapped[str | None] = mapped_column(Text)
    computed_co2e: Mapped[Decimal | None] = mapped_column(Numeric(18, 6))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
