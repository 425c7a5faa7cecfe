"""ghgcalc Pydantic models for type-safe data validation.

Quantities are Decimal throughout so that aggregation is exact and repeatable.
Emission values are kilograms CO2e unless a field name says tonnes (tco2e).
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

MIN_REFERENCE_YEAR = 2000
MAX_REFERENCE_YEAR = 2100

KG_PER_TONNE = Decimal("1000")


class Scope(str, Enum):
    """GHG Protocol scope classification."""

    SCOPE_1 = "Scope 1"
    SCOPE_2 = "Scope 2"
    SCOPE_3_CAT_6 = "Scope 3 Cat 6"  # Grey fleet / business travel


class FootprintStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


class DataSourceType(str, Enum):
    """Provenance of a facility intensity used in a production mix."""

    PRIMARY = "Primary"  # Verified utility bills
    SECONDARY_AVERAGE = "Secondary_Average"  # Industry average proxy


class ReportStatus(str, Enum):
    DRAFT = "Draft"
    FINALIZED = "Finalized"


class OverheadCategory(str, Enum):
    """Categories a corporate overhead entry can be filed under."""

    BUSINESS_TRAVEL = "business_travel"
    PURCHASED_SERVICES = "purchased_services"
    EMPLOYEE_COMMUTING = "employee_commuting"
    CAPITAL_GOODS = "capital_goods"
    OPERATIONAL_WASTE = "operational_waste"
    DOWNSTREAM_LOGISTICS = "downstream_logistics"
    UPSTREAM_TRANSPORT = "upstream_transport"
    DOWNSTREAM_TRANSPORT = "downstream_transport"
    USE_PHASE = "use_phase"


class OverheadBucket(str, Enum):
    """Scope 3 bucket an overhead entry is summed into.

    Same as OverheadCategory except that purchased services carrying a
    material type are marketing materials.
    """

    BUSINESS_TRAVEL = "business_travel"
    PURCHASED_SERVICES = "purchased_services"
    MARKETING_MATERIALS = "marketing_materials"
    EMPLOYEE_COMMUTING = "employee_commuting"
    CAPITAL_GOODS = "capital_goods"
    OPERATIONAL_WASTE = "operational_waste"
    DOWNSTREAM_LOGISTICS = "downstream_logistics"
    UPSTREAM_TRANSPORT = "upstream_transport"
    DOWNSTREAM_TRANSPORT = "downstream_transport"
    USE_PHASE = "use_phase"


class ActivityEntry(BaseModel):
    """One utility or fuel consumption record for a facility."""

    id: UUID = Field(default_factory=uuid4)
    org_id: str
    facility_id: UUID | None = None
    activity_type: str  # "natural_gas", "electricity_grid", "refrigerant_leakage"
    quantity: Decimal
    unit: str  # "kWh", "m3", "kg", "litres"
    reporting_period_start: date
    reporting_period_end: date
    scope: Scope

    @field_validator("scope")
    @classmethod
    def validate_scope(cls, v: Scope) -> Scope:
        if v not in (Scope.SCOPE_1, Scope.SCOPE_2):
            raise ValueError("activity entries are Scope 1 or Scope 2")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "org_id": "acme-brewing",
                "activity_type": "natural_gas",
                "quantity": Decimal("1200"),
                "unit": "m3",
                "reporting_period_start": "2024-01-01",
                "reporting_period_end": "2024-03-31",
                "scope": "Scope 1",
            }
        }


class EmissionFactor(BaseModel):
    """Immutable reference factor: kg CO2e per one `unit` of activity."""

    factor_id: str
    activity_type: str
    value: Decimal
    unit: str
    scope: Scope
    source: str | None = None  # "DEFRA 2024", ...

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("emission factor value must be non-negative")
        return v


class FleetActivity(BaseModel):
    """Vehicle activity already expressed in tonnes CO2e."""

    id: UUID = Field(default_factory=uuid4)
    org_id: str
    emissions_tco2e: Decimal | None = None
    scope: Scope
    activity_date: date | None = None
    reporting_period_start: date
    reporting_period_end: date

    @property
    def emissions_kg(self) -> Decimal:
        return (self.emissions_tco2e or Decimal("0")) * KG_PER_TONNE


class ProductionLog(BaseModel):
    """One manufacturing run."""

    id: UUID = Field(default_factory=uuid4)
    org_id: str
    product_id: UUID
    facility_id: UUID | None = None
    production_date: date
    units_produced: int | None = None
    # Bulk volume is informational only; footprints are per functional unit
    volume: Decimal | None = None
    unit: str | None = None


class FootprintScopeBreakdown(BaseModel):
    """Per-functional-unit scope split of a product footprint (kg CO2e)."""

    scope1: Decimal = Decimal("0")
    scope2: Decimal = Decimal("0")
    scope3: Decimal = Decimal("0")


class ProductFootprint(BaseModel):
    """Per-unit lifecycle footprint of a product."""

    id: UUID = Field(default_factory=uuid4)
    org_id: str
    product_id: UUID
    status: FootprintStatus = FootprintStatus.DRAFT
    total_ghg_emissions: Decimal | None = None
    breakdown: FootprintScopeBreakdown | None = None
    reference_year: int
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("reference_year")
    @classmethod
    def validate_reference_year(cls, v: int) -> int:
        if not MIN_REFERENCE_YEAR <= v <= MAX_REFERENCE_YEAR:
            raise ValueError(
                f"reference_year must be between {MIN_REFERENCE_YEAR} and "
                f"{MAX_REFERENCE_YEAR}, got {v}"
            )
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "org_id": "acme-brewing",
                "product_id": "550e8400-e29b-41d4-a716-446655440000",
                "status": "completed",
                "total_ghg_emissions": Decimal("15"),
                "breakdown": {"scope1": "2", "scope2": "3", "scope3": "10"},
                "reference_year": 2024,
            }
        }


class ProductionMixAllocation(BaseModel):
    """Share of a footprint's production attributed to one facility."""

    id: UUID = Field(default_factory=uuid4)
    footprint_id: UUID
    facility_id: UUID
    production_share: Decimal
    facility_intensity: Decimal | None = None  # kg CO2e per unit
    data_source_type: DataSourceType | None = None
    notes: str | None = None

    @field_validator("production_share")
    @classmethod
    def validate_share(cls, v: Decimal) -> Decimal:
        if not Decimal("0") <= v <= Decimal("1"):
            raise ValueError("production_share must be between 0 and 1")
        return v


class CorporateOverheadEntry(BaseModel):
    """Precomputed Scope 3 overhead line of a corporate report."""

    id: UUID = Field(default_factory=uuid4)
    report_id: UUID
    # Raw category text; unknown values are classified as purchased services
    category: str
    material_type: str | None = None
    computed_co2e: Decimal | None = None


class MixCompleteness(BaseModel):
    """Read-side view of a footprint's production mix."""

    footprint_id: UUID
    total_share: Decimal
    is_complete: bool
    weighted_average_intensity: Decimal
    facility_count: int


class Scope3Breakdown(BaseModel):
    """Scope 3 totals per category (kg CO2e).

    Every key is always present. `waste`, `logistics` and `marketing` are
    derived from their source fields and cannot diverge from them.
    """

    products: Decimal = Decimal("0")
    business_travel: Decimal = Decimal("0")
    purchased_services: Decimal = Decimal("0")
    employee_commuting: Decimal = Decimal("0")
    capital_goods: Decimal = Decimal("0")
    operational_waste: Decimal = Decimal("0")
    downstream_logistics: Decimal = Decimal("0")
    marketing_materials: Decimal = Decimal("0")
    upstream_transport: Decimal = Decimal("0")
    downstream_transport: Decimal = Decimal("0")
    use_phase: Decimal = Decimal("0")

    # Audit split of business_travel; not part of the total
    business_travel_overheads: Decimal = Decimal("0")
    business_travel_grey_fleet: Decimal = Decimal("0")

    @computed_field  # type: ignore[misc]
    @property
    def waste(self) -> Decimal:
        return self.operational_waste

    @computed_field  # type: ignore[misc]
    @property
    def logistics(self) -> Decimal:
        return self.downstream_logistics

    @computed_field  # type: ignore[misc]
    @property
    def marketing(self) -> Decimal:
        return self.marketing_materials

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> Decimal:
        return sum(
            (getattr(self, bucket) for bucket in SCOPE3_BUCKETS),
            Decimal("0"),
        )


SCOPE3_BUCKETS: tuple[str, ...] = (
    "products",
    "business_travel",
    "purchased_services",
    "employee_commuting",
    "capital_goods",
    "operational_waste",
    "downstream_logistics",
    "marketing_materials",
    "upstream_transport",
    "downstream_transport",
    "use_phase",
)


class CorporateEmissionsResult(BaseModel):
    """Corporate footprint for one organization and year (kg CO2e)."""

    year: int
    scope1: Decimal
    scope2: Decimal
    scope3: Scope3Breakdown
    total: Decimal
    has_data: bool

    def to_json(self) -> str:
        """Canonical serialization; identical inputs give identical bytes."""
        return json.dumps(
            self.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
        )

    class Config:
        json_schema_extra = {
            "example": {
                "year": 2024,
                "scope1": "5250",
                "scope2": "1200",
                "scope3": {"products": "10", "total": "10"},
                "total": "6460",
                "has_data": True,
            }
        }
