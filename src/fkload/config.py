"""
Configuration management for fkload.

Loads and validates configuration from fkload.toml files using Pydantic.
Environment variables (FKLOAD_DATABASE_URL, FKLOAD_LOAD_USE_TRANSACTION, ...)
fill in values the file leaves out.
"""

from __future__ import annotations

import logging
import sqlite3
import tomllib
from pathlib import Path
from typing import Literal, Optional

import psycopg
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fkload.exceptions import IntrospectionError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "fkload.toml"

Dialect = Literal["postgresql", "sqlite"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class DatabaseConfig(BaseSettings):
    """Database connection configuration."""

    model_config = SettingsConfigDict(env_prefix="FKLOAD_DATABASE_")

    url: str = Field(
        default="postgresql://localhost/postgres",
        description="Connection URL (postgresql://... or sqlite:///path)",
    )
    schema_name: str = Field(
        default="public", description="PostgreSQL schema holding the tables"
    )
    dialect: Optional[Dialect] = Field(
        default=None, description="Dialect override (inferred from url when unset)"
    )

    def resolved_dialect(self) -> str:
        """Get the configured dialect, inferring it from the URL scheme."""
        if self.dialect:
            return self.dialect
        scheme = self.url.split(":", 1)[0].lower()
        if scheme in ("postgresql", "postgres"):
            return "postgresql"
        if scheme == "sqlite":
            return "sqlite"
        raise ValueError(
            f"Cannot infer dialect from URL scheme '{scheme}'. "
            f"Set database.dialect to 'postgresql' or 'sqlite'."
        )

    def sqlite_path(self) -> str:
        """Get the database path of a sqlite:// URL."""
        path = self.url.split("://", 1)[-1]
        if path in ("", ":memory:", "/:memory:"):
            return ":memory:"
        # sqlite:///relative.db -> relative.db, sqlite:////abs.db -> /abs.db
        return path[1:] if path.startswith("/") else path


class LoadConfig(BaseSettings):
    """Load behavior configuration."""

    model_config = SettingsConfigDict(env_prefix="FKLOAD_LOAD_")

    use_transaction: bool = Field(
        default=True, description="Wrap each load in one transaction"
    )
    log_level: LogLevel = Field(default="WARNING", description="Logging level for the CLI")


class Config(BaseSettings):
    """Main configuration for fkload."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    load: LoadConfig = Field(default_factory=LoadConfig)

    @classmethod
    def from_toml(cls, path: Path | str) -> Config:
        """
        Load configuration from TOML file.

        Args:
            path: Path to fkload.toml file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data)

    @classmethod
    def find_and_load(cls, start_dir: Optional[Path] = None) -> Config:
        """
        Find and load configuration from fkload.toml.

        Searches for fkload.toml starting from start_dir and walking up
        parent directories until found or reaching filesystem root.

        Raises:
            FileNotFoundError: If no config file found
        """
        if start_dir is None:
            start_dir = Path.cwd()

        current = Path(start_dir).resolve()

        while True:
            config_path = current / CONFIG_FILENAME
            if config_path.exists():
                return cls.from_toml(config_path)

            parent = current.parent
            if parent == current:
                break
            current = parent

        raise FileNotFoundError(
            f"No {CONFIG_FILENAME} found in {start_dir} or parent directories."
        )

    def to_toml(self, path: Path | str) -> None:
        """
        Write configuration to TOML file.

        Args:
            path: Path to write fkload.toml
        """
        dialect_line = (
            f'dialect = "{self.database.dialect}"\n' if self.database.dialect else ""
        )
        toml_content = f"""# fkload configuration

[database]
url = "{self.database.url}"
schema_name = "{self.database.schema_name}"
{dialect_line}
[load]
use_transaction = {str(self.load.use_transaction).lower()}
log_level = "{self.load.log_level}"
"""

        Path(path).write_text(toml_content)


def connect(config: Config):
    """
    Open a connection for the configured database.

    Returns:
        psycopg.Connection or sqlite3.Connection

    Raises:
        IntrospectionError: If the database cannot be reached
    """
    dialect = config.database.resolved_dialect()
    try:
        if dialect == "sqlite":
            conn = sqlite3.connect(config.database.sqlite_path())
            conn.execute("PRAGMA foreign_keys = ON")
            return conn
        return psycopg.connect(config.database.url, autocommit=False)
    except (psycopg.Error, sqlite3.Error) as exc:
        raise IntrospectionError(f"cannot connect to {dialect} database: {exc}") from exc
