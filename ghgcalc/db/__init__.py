"""Database layer for ghgcalc with async SQLAlchemy."""

from ghgcalc.db.connection import get_session, get_session_factory, init_db
from ghgcalc.db.models import (
    ActivityEntryModel,
    Base,
    CorporateOverheadModel,
    CorporateReportModel,
    EmissionFactorModel,
    FacilityModel,
    FleetActivityModel,
    ProductFootprintModel,
    ProductionLogModel,
    ProductionMixModel,
)

__all__ = [
    "Base",
    "FacilityModel",
    "EmissionFactorModel",
    "ActivityEntryModel",
    "FleetActivityModel",
    "ProductionLogModel",
    "ProductFootprintModel",
    "ProductionMixModel",
    "CorporateReportModel",
    "CorporateOverheadModel",
    "get_session",
    "get_session_factory",
    "init_db",
]
