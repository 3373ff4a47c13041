"""Pytest configuration and shared fixtures."""

import pytest

from simulator.db.models import (
    ClusterModel,
    ConnectionModel,
    MapModel,
    SimulationModel,
    VehicleModel,
    get_session,
)
from simulator.db.service import SimulationService
from simulator.loader import SimulationLoader


@pytest.fixture
def loader():
    """Create loader without runtime callbacks."""
    loader = SimulationLoader()
    yield loader
    loader.shutdown()


@pytest.fixture
def db_service(tmp_path, loader):
    """Create test database service."""
    db_url = f"sqlite:///{tmp_path}/test.db"
    service = SimulationService(db_url, loader=loader)
    yield service
    service.engine.dispose()


@pytest.fixture
def seed(db_service):
    """Insert reference rows and return them by name."""

    def _seed(*rows):
        with get_session(db_service.engine) as session:
            session.add_all(rows)
            session.commit()
        return rows

    return _seed


@pytest.fixture
def assets(seed):
    """Cluster, maps and vehicles in every status."""
    cluster = ClusterModel(name="local")
    valid_map = MapModel(name="BorregasAve", status="Valid")
    downloading_map = MapModel(name="SanFrancisco", status="Downloading")
    invalid_map = MapModel(name="Shalun", status="Invalid")
    valid_vehicle = VehicleModel(name="Jaguar2015XE", status="Valid")
    second_vehicle = VehicleModel(name="Lincoln2017MKZ", status="Valid")
    downloading_vehicle = VehicleModel(name="Lexus2016RXHybrid", status="Downloading")
    invalid_vehicle = VehicleModel(name="DeliveryTruck", status="Invalid")

    seed(
        cluster,
        valid_map,
        downloading_map,
        invalid_map,
        valid_vehicle,
        second_vehicle,
        downloading_vehicle,
        invalid_vehicle,
    )

    return {
        "cluster": cluster,
        "valid_map": valid_map,
        "downloading_map": downloading_map,
        "invalid_map": invalid_map,
        "valid_vehicle": valid_vehicle,
        "second_vehicle": second_vehicle,
        "downloading_vehicle": downloading_vehicle,
        "invalid_vehicle": invalid_vehicle,
    }


@pytest.fixture
def make_simulation():
    """Build an unsaved simulation with the given vehicle ids."""

    def _make(name="Test Simulation", vehicles=(), **kwargs):
        return SimulationModel(
            name=name,
            vehicles=[ConnectionModel(vehicle=v) for v in vehicles],
            **kwargs,
        )

    return _make
