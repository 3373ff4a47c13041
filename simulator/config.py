"""Configuration for the simulation database."""

import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR = Path(__file__).parent.parent / "DATA"

DEFAULT_DB_URL = f"sqlite:///{DATA_DIR}/simulations.db"

ENV_DB_URL = "SIMULATOR_DATABASE_URL"
ENV_DB_ECHO = "SIMULATOR_DATABASE_ECHO"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class DatabaseConfig:
    """Configuration for the simulation store.

    Attributes:
        url: SQLAlchemy database URL (SQLite or PostgreSQL)
        echo: Log every emitted SQL statement through the sqlalchemy.engine logger
    """

    url: str = DEFAULT_DB_URL
    echo: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration parameters."""
        if not self.url:
            raise ValueError("url must not be empty")
        if "://" not in self.url:
            raise ValueError(f"url is not a database URL: {self.url!r}")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        """Whether the URL points at an in-memory SQLite database."""
        return self.is_sqlite and (
            self.url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in self.url
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary.

        Returns:
            Configuration as dictionary
        """
        return {
            "url": self.url,
            "echo": self.echo,
        }

    @classmethod
    def from_dict(cls, config_dict: dict) -> "DatabaseConfig":
        """Create config from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            DatabaseConfig instance
        """
        return cls(**config_dict)

    @classmethod
    def from_env(cls, environ=None) -> "DatabaseConfig":
        """Create config from environment variables.

        Reads SIMULATOR_DATABASE_URL and SIMULATOR_DATABASE_ECHO, falling
        back to the defaults for anything unset.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            DatabaseConfig instance
        """
        environ = os.environ if environ is None else environ
        return cls(
            url=environ.get(ENV_DB_URL) or DEFAULT_DB_URL,
            echo=environ.get(ENV_DB_ECHO, "").strip().lower() in _TRUE_VALUES,
        )
