"""Database models for simulations and the assets they reference.

Supports SQLite (default) and PostgreSQL (production).
"""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, reconstructor, sessionmaker
from sqlalchemy.pool import StaticPool

from simulator.config import DATA_DIR, DEFAULT_DB_URL, DatabaseConfig


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ConnectionModel(Base):
    """Association between a simulation and one of its vehicles.

    Rows are owned by their simulation and rewritten as a batch whenever
    the simulation is added or updated.
    """

    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    simulation = Column(Integer, ForeignKey("simulations.id"), nullable=False, index=True)
    vehicle = Column(Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "simulation": self.simulation,
            "vehicle": self.vehicle,
        }


class SimulationModel(Base):
    """Persisted simulation configuration.

    ``vehicles`` is not a column: it is filled by the service from the
    ``connections`` table, ordered by connection id.
    """

    __tablename__ = "simulations"

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identification
    name = Column(String(255), nullable=False, index=True)
    owner = Column(String(255), nullable=True, index=True)  # NULL is visible to everyone

    # References
    cluster = Column(Integer, nullable=True)
    map = Column(Integer, nullable=True)

    # Skip map and vehicle checks, the scene is driven through the API
    api_only = Column(Boolean, nullable=True)

    def __init__(self, vehicles=None, **kwargs):
        super().__init__(**kwargs)
        self.vehicles = list(vehicles or [])

    @reconstructor
    def _init_on_load(self):
        self.vehicles = []

    def column_values(self) -> dict:
        """Column values without the primary key, for INSERT/UPDATE statements."""
        return {
            column.name: getattr(self, column.key)
            for column in self.__table__.columns
            if not column.primary_key
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for API/display.

        Returns:
            Dictionary representation including vehicle connections
        """
        result = {"id": self.id}
        result.update(self.column_values())
        result["vehicles"] = [v.to_dict() for v in self.vehicles]
        return result

    def __repr__(self) -> str:
        return f"SimulationModel(id={self.id!r}, name={self.name!r}, owner={self.owner!r})"


class ClusterModel(Base):
    """Cluster of machines a simulation runs on."""

    __tablename__ = "clusters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    owner = Column(String(255), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "owner": self.owner}


class MapModel(Base):
    """Downloadable map asset."""

    __tablename__ = "maps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, index=True)  # Valid, Invalid, Downloading
    owner = Column(String(255), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "owner": self.owner,
        }


class VehicleModel(Base):
    """Downloadable vehicle asset."""

    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, index=True)
    owner = Column(String(255), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "owner": self.owner,
        }


def create_db_engine(db_url: str = DEFAULT_DB_URL, echo: bool = False):
    """Create database engine and tables.

    Args:
        db_url: Database connection URL (SQLite or PostgreSQL)
        echo: Log emitted SQL

    Returns:
        SQLAlchemy engine
    """
    config = DatabaseConfig(url=db_url, echo=echo)

    if db_url == DEFAULT_DB_URL:
        DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Use check_same_thread=False for SQLite to allow multi-threading
    kwargs = {}
    if config.is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    if config.is_memory:
        # One shared connection, otherwise each session gets an empty database
        kwargs["poolclass"] = StaticPool

    engine = create_engine(config.url, echo=config.echo, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def get_session(engine):
    """Get database session.

    Loaded attributes stay readable after commit so records can be
    returned to callers once the session is closed.

    Args:
        engine: SQLAlchemy engine

    Returns:
        New session instance
    """
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()
