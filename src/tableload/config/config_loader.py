"""
Configuration loader for tableload.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "backend": "sqlite",
        "sqlite": {
            "path": ":memory:",
        },
        "postgresql": {
            "dsn": None,
        },
        "sqlserver": {
            "host": "localhost",
            "port": 1433,
            "database": "master",
            "user": "sa",
            "driver": "ODBC Driver 18 for SQL Server",
            "schema": "dbo",
            "trust_server_certificate": True,
        },
    },
    "loader": {
        "truncate": True,
        "reset_sequences": True,
        "exclude_tables": ["schema_migrations", "ar_internal_metadata", "alembic_version"],
        "format": None,
    },
}


class LoadConfig:
    """
    Configuration for loading dumps.

    Loads a YAML configuration file over built-in defaults and applies
    environment variable overrides.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = config_path
        self.config = copy.deepcopy(DEFAULT_CONFIG)
        if config_path:
            _deep_merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        return config or {}

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        database = self.config.setdefault("database", {})

        backend = os.environ.get("TABLELOAD_DB_BACKEND")
        if backend:
            database["backend"] = backend

        sqlite_path = os.environ.get("TABLELOAD_SQLITE_PATH")
        if sqlite_path:
            database.setdefault("sqlite", {})["path"] = sqlite_path

        pg_dsn = os.environ.get("TABLELOAD_PG_DSN")
        if pg_dsn:
            database.setdefault("postgresql", {})["dsn"] = pg_dsn

        sqlserver = database.setdefault("sqlserver", {})
        for env_var, key in (
            ("TABLELOAD_SQLSERVER_HOST", "host"),
            ("TABLELOAD_SQLSERVER_DATABASE", "database"),
            ("TABLELOAD_SQLSERVER_USER", "user"),
            ("TABLELOAD_SQLSERVER_DRIVER", "driver"),
        ):
            value = os.environ.get(env_var)
            if value:
                sqlserver[key] = value

        port = os.environ.get("TABLELOAD_SQLSERVER_PORT")
        if port:
            sqlserver["port"] = int(port)

    @property
    def backend(self) -> str:
        return self.get("database.backend", "sqlite")

    def get_database_config(self) -> Dict[str, Any]:
        """Get database configuration."""
        return self.config.get("database", {})

    def get_loader_config(self) -> Dict[str, Any]:
        """Get loader configuration."""
        return self.config.get("loader", {})

    def get_exclude_tables(self) -> List[str]:
        """Get tables that are never loaded from a dump."""
        return list(self.get("loader.exclude_tables", []))

    def connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for create_connection() for the configured backend."""
        backend = self.backend.lower()
        database = self.get_database_config()

        if backend == "sqlite":
            return {"backend": "sqlite", "db_path": database.get("sqlite", {}).get("path")}

        if backend in ("postgresql", "postgres"):
            return {"backend": "postgresql", "dsn": database.get("postgresql", {}).get("dsn")}

        sqlserver = database.get("sqlserver", {})
        kwargs = {
            "backend": backend,
            "connection_string": sqlserver.get("connection_string"),
            "host": sqlserver.get("host", "localhost"),
            "port": int(sqlserver.get("port", 1433)),
            "database": sqlserver.get("database", "master"),
            "username": sqlserver.get("user", "sa"),
            "password": sqlserver.get("password"),
            "driver": sqlserver.get("driver", "ODBC Driver 18 for SQL Server"),
            "default_schema": sqlserver.get("schema", "dbo"),
            "trust_server_certificate": sqlserver.get("trust_server_certificate", True),
        }
        return kwargs

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, recursing into nested dicts."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
