"""Database module for simulation persistence."""

from simulator.db.models import (
    ClusterModel,
    ConnectionModel,
    MapModel,
    SimulationModel,
    VehicleModel,
    create_db_engine,
    get_session,
)
from simulator.db.service import AssetStatus, SimulationService, SimulationStatus

__all__ = [
    "AssetStatus",
    "ClusterModel",
    "ConnectionModel",
    "MapModel",
    "SimulationModel",
    "SimulationService",
    "SimulationStatus",
    "VehicleModel",
    "create_db_engine",
    "get_session",
]
