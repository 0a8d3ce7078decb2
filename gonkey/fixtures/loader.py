"""Choosing a fixture loader for a database type."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Protocol

from gonkey.fixtures.aerospike import AerospikeLoader
from gonkey.fixtures.mysql import MysqlLoader
from gonkey.fixtures.postgres import PostgresLoader

__all__ = [
    "POSTGRES_PARAM",
    "MYSQL_PARAM",
    "AEROSPIKE_PARAM",
    "REDIS_PARAM",
    "DbType",
    "Loader",
    "FixturesConfig",
    "new_loader",
    "fetch_db_type",
]

POSTGRES_PARAM = "postgres"
MYSQL_PARAM = "mysql"
AEROSPIKE_PARAM = "aerospike"
REDIS_PARAM = "redis"


class DbType(enum.Enum):
    POSTGRES = enum.auto()
    MYSQL = enum.auto()
    AEROSPIKE = enum.auto()
    REDIS = enum.auto()
    CUSTOM_LOADER = enum.auto()


class Loader(Protocol):
    """Loads named fixtures into storage."""

    def load(self, names: list[str]) -> None: ...


@dataclass
class FixturesConfig:
    """Storage handles and options for building a fixture loader."""

    db: Any = None
    aerospike: Any = None
    db_type: DbType = DbType.POSTGRES
    location: str = ""
    debug: bool = False
    fixture_loader: Loader | None = None


def new_loader(config: FixturesConfig) -> Loader:
    """Build the loader for the configured database type; raise ValueError if none fits."""
    location = config.location.rstrip("/")
    if config.db_type is DbType.POSTGRES:
        return PostgresLoader(config.db, location, config.debug)
    if config.db_type is DbType.MYSQL:
        return MysqlLoader(config.db, location, config.debug)
    if config.db_type is DbType.AEROSPIKE:
        return AerospikeLoader(config.aerospike, location, config.debug)
    if config.fixture_loader is not None:
        return config.fixture_loader
    raise ValueError("unknown db type")


_PARAMS = {
    POSTGRES_PARAM: DbType.POSTGRES,
    MYSQL_PARAM: DbType.MYSQL,
    AEROSPIKE_PARAM: DbType.AEROSPIKE,
    REDIS_PARAM: DbType.REDIS,
}


def fetch_db_type(db_type: str) -> DbType:
    """Map a command-line database name to its DbType; raise ValueError if unknown."""
    try:
        return _PARAMS[db_type]
    except KeyError:
        raise ValueError("unknown db type param") from None