"""Database service for simulation persistence.

Provides CRUD operations over simulations and their vehicle connections,
readiness checks against the referenced cluster, map and vehicles, and
access to the simulation that is currently running.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Optional

from sqlalchemy import delete, func, insert, or_, select, update

from simulator.config import DEFAULT_DB_URL, DatabaseConfig
from simulator.db.models import (
    ClusterModel,
    ConnectionModel,
    MapModel,
    SimulationModel,
    VehicleModel,
    create_db_engine,
    get_session,
)
from simulator.loader import SimulationLoader

logger = logging.getLogger(__name__)


class SimulationStatus(str, Enum):
    """Derived readiness of a simulation."""

    VALID = "Valid"
    INVALID = "Invalid"
    RUNNING = "Running"


class AssetStatus(str, Enum):
    """Status stored on map and vehicle rows."""

    VALID = "Valid"
    INVALID = "Invalid"
    DOWNLOADING = "Downloading"


def clean_filter(filter_text: str) -> str:
    """Build a LIKE pattern matching ``filter_text`` anywhere in a name.

    SQL wildcard characters are removed from the input so they can never
    widen the match.
    """
    return "%" + filter_text.replace("%", "").replace("_", "") + "%"


def _owned_by(owner: Optional[str]):
    return or_(SimulationModel.owner == owner, SimulationModel.owner.is_(None))


class SimulationService:
    """Service for managing simulations.

    Every operation opens its own session and transaction. Store errors
    roll the transaction back and propagate unchanged.

    Example:
        service = SimulationService(loader=loader)
        sim_id = service.add_simulation(
            SimulationModel(name="Highway", cluster=1, map=2,
                            vehicles=[ConnectionModel(vehicle=3)])
        )
        sim = service.get_simulation(sim_id, owner="alice")
        service.get_actual_status(sim)
    """

    def __init__(self, db_url: str = DEFAULT_DB_URL, loader: Optional[SimulationLoader] = None, echo: bool = False):
        """Initialize service with database connection.

        Args:
            db_url: Database URL (defaults to SQLite in DATA folder)
            loader: Holder of the running simulation
            echo: Log emitted SQL
        """
        self.engine = create_db_engine(db_url, echo=echo)
        self.loader = loader if loader is not None else SimulationLoader()

    @classmethod
    def from_config(cls, config: DatabaseConfig, loader: Optional[SimulationLoader] = None) -> "SimulationService":
        return cls(config.url, loader=loader, echo=config.echo)

    @contextmanager
    def _transaction(self):
        session = get_session(self.engine)
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.warning("Rolling back transaction: %s", type(e).__name__)
            session.rollback()
            raise
        finally:
            session.close()

    def _load_vehicles(self, session, simulation: SimulationModel):
        simulation.vehicles = list(
            session.scalars(
                select(ConnectionModel)
                .where(ConnectionModel.simulation == simulation.id)
                .order_by(ConnectionModel.id)
            )
        )

    def _clear_connections(self, session, simulation_id: Optional[int]):
        session.execute(
            delete(ConnectionModel.__table__).where(ConnectionModel.simulation == simulation_id)
        )

    def _insert_connections(self, session, simulation_id: int, connections) -> list[int]:
        ids = []
        for connection in connections:
            result = session.execute(
                insert(ConnectionModel.__table__).values(
                    simulation=simulation_id,
                    vehicle=connection.vehicle,
                )
            )
            ids.append(result.inserted_primary_key[0])
        return ids

    @staticmethod
    def _assign_ids(simulation: SimulationModel, simulation_id: int, connection_ids: list[int]):
        simulation.id = simulation_id
        for connection, connection_id in zip(simulation.vehicles, connection_ids):
            connection.id = connection_id
            connection.simulation = simulation_id

    def list_simulations(
        self,
        filter: Optional[str] = None,
        offset: int = 0,
        count: int = 50,
        owner: Optional[str] = None,
    ) -> list[SimulationModel]:
        """List simulations, oldest first.

        A non-empty ``filter`` matches names containing it and does not
        look at ownership. Without a filter only simulations owned by
        ``owner`` or by nobody are returned.

        Args:
            filter: Substring to search for in names
            offset: Offset for pagination
            count: Maximum simulations to return
            owner: Caller identity

        Returns:
            Simulations with their vehicle connections
        """
        with self._transaction() as session:
            query = select(SimulationModel)
            if filter:
                query = query.where(SimulationModel.name.like(clean_filter(filter)))
            else:
                query = query.where(_owned_by(owner))

            simulations = list(
                session.scalars(query.order_by(SimulationModel.id).offset(offset).limit(count))
            )
            for simulation in simulations:
                self._load_vehicles(session, simulation)

        logger.debug("Listed %d simulations (offset=%d, count=%d)", len(simulations), offset, count)
        return simulations

    def get_simulation(self, simulation_id: int, owner: Optional[str] = None) -> SimulationModel:
        """Get simulation by ID.

        Args:
            simulation_id: Simulation ID
            owner: Caller identity

        Returns:
            Simulation with its vehicle connections

        Raises:
            sqlalchemy.exc.NoResultFound: No simulation with this ID is visible to ``owner``
        """
        with self._transaction() as session:
            simulation = session.execute(
                select(SimulationModel)
                .where(SimulationModel.id == simulation_id)
                .where(_owned_by(owner))
            ).scalar_one()
            self._load_vehicles(session, simulation)
        return simulation

    def add_simulation(self, simulation: SimulationModel) -> int:
        """Insert a simulation and its vehicle connections.

        The store assigns the ID; once committed it is written back to
        ``simulation`` and to each of its connections. A failed insert
        leaves the IDs on ``simulation`` untouched.

        Args:
            simulation: Simulation to insert

        Returns:
            ID of the new simulation
        """
        with self._transaction() as session:
            self._clear_connections(session, simulation.id)
            result = session.execute(
                insert(SimulationModel.__table__).values(**simulation.column_values())
            )
            simulation_id = result.inserted_primary_key[0]
            connection_ids = self._insert_connections(session, simulation_id, simulation.vehicles)

        self._assign_ids(simulation, simulation_id, connection_ids)
        logger.info("Added simulation id=%d with %d vehicles", simulation.id, len(simulation.vehicles))
        return simulation.id

    def update_simulation(self, simulation: SimulationModel) -> int:
        """Replace a simulation row and its full set of vehicle connections.

        Only a simulation owned by ``simulation.owner`` or by nobody is
        updated. When nothing matches, the connection rewrite is undone too.

        Args:
            simulation: Simulation with the new values

        Returns:
            Number of simulation rows updated (0 if not found)
        """
        with self._transaction() as session:
            self._clear_connections(session, simulation.id)
            connection_ids = self._insert_connections(session, simulation.id, simulation.vehicles)

            result = session.execute(
                update(SimulationModel.__table__)
                .where(SimulationModel.id == simulation.id)
                .where(_owned_by(simulation.owner))
                .values(**simulation.column_values())
            )
            updated = result.rowcount
            if updated == 0:
                session.rollback()

        if updated:
            self._assign_ids(simulation, simulation.id, connection_ids)
        logger.info("Updated simulation id=%s (%d rows)", simulation.id, updated)
        return updated

    def delete_simulation(self, simulation_id: int, owner: Optional[str] = None) -> int:
        """Delete a simulation and its vehicle connections.

        Connections are kept when no simulation row matches.

        Args:
            simulation_id: Simulation ID to delete
            owner: Caller identity

        Returns:
            Number of simulation rows deleted (0 if not found)
        """
        with self._transaction() as session:
            self._clear_connections(session, simulation_id)
            result = session.execute(
                delete(SimulationModel.__table__)
                .where(SimulationModel.id == simulation_id)
                .where(_owned_by(owner))
            )
            deleted = result.rowcount
            if deleted == 0:
                session.rollback()

        logger.info("Deleted simulation id=%s (%d rows)", simulation_id, deleted)
        return deleted

    def get_actual_status(self, simulation: SimulationModel, allow_downloading: bool = False) -> SimulationStatus:
        """Work out whether a simulation can be started.

        Args:
            simulation: Simulation to check
            allow_downloading: Accept map and vehicles that are still downloading

        Returns:
            RUNNING if it is the current simulation, otherwise VALID or INVALID
        """
        current = self.loader.current_simulation
        if current is not None and simulation.id == current.id:
            return SimulationStatus.RUNNING

        with get_session(self.engine) as session:
            if not self._exists(session, ClusterModel, simulation.cluster):
                return SimulationStatus.INVALID

            if simulation.api_only:
                return SimulationStatus.VALID

            map_row = None
            if simulation.map is not None:
                map_row = session.get(MapModel, simulation.map)
            if map_row is None:
                return SimulationStatus.INVALID

            if allow_downloading and map_row.status == AssetStatus.DOWNLOADING:
                pass
            elif map_row.status != AssetStatus.VALID:
                return SimulationStatus.INVALID

            if not simulation.vehicles:
                return SimulationStatus.INVALID

            # Counts only; duplicate ids in the request collapse into one
            requested = {v.vehicle for v in simulation.vehicles}
            query = (
                select(func.count())
                .select_from(VehicleModel)
                .where(VehicleModel.id.in_(list(requested)))
            )
            if allow_downloading:
                query = query.where(VehicleModel.status != AssetStatus.INVALID.value)
            else:
                query = query.where(VehicleModel.status == AssetStatus.VALID.value)

            if session.scalar(query) != len(requested):
                return SimulationStatus.INVALID

        return SimulationStatus.VALID

    @staticmethod
    def _exists(session, model, row_id) -> bool:
        if row_id is None:
            return False
        return session.scalar(select(model.id).where(model.id == row_id)) is not None

    def get_current(self, owner: Optional[str] = None) -> Optional[SimulationModel]:
        """Get the running simulation if ``owner`` may see it.

        Args:
            owner: Caller identity

        Returns:
            Running simulation, or None if nothing runs or it belongs to someone else
        """
        current = self.loader.current_simulation
        if current is None:
            return None
        if current.owner is not None and current.owner != owner:
            return None
        return current

    def start(self, simulation: SimulationModel):
        """Hand a simulation to the loader; does not wait for it to start."""
        self.loader.start_async(simulation)

    def stop(self):
        """Ask the loader to stop the running simulation; does not wait."""
        self.loader.stop_async()
