from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, TypeVar

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from chainwatch.core.logger import get_logger
from chainwatch.db.models import metadata_obj

logger = get_logger(__name__)

T = TypeVar("T")


class DatabaseConfigError(ValueError):
    pass


class ProtectedEnvironmentError(RuntimeError):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    environment: str = "development"
    max_connections: int = 10
    ssl: bool = False
    connect_timeout: int = 30
    idle_timeout: int = 20
    max_lifetime: int = 1800


ENVIRONMENTS: dict[str, DatabaseConfig] = {
    "development": DatabaseConfig(url="", environment="development", max_connections=10, ssl=False),
    "test": DatabaseConfig(url="", environment="test", max_connections=5, ssl=False),
    "production": DatabaseConfig(url="", environment="production", max_connections=20, ssl=True),
}


def config_for_environment(name: str, url: str) -> DatabaseConfig:
    preset = ENVIRONMENTS.get(name)
    if preset is None:
        raise DatabaseConfigError(f"Unknown environment: {name}")
    if not url:
        raise DatabaseConfigError(f"Database URL not configured for environment: {name}")
    return replace(preset, url=url)


def mask_database_url(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid url>"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _postgres_connect_args(config: DatabaseConfig) -> dict[str, Any]:
    # libpq sends TCP keepalives once a connection has idled for idle_timeout seconds.
    connect_args: dict[str, Any] = {
        "connect_timeout": config.connect_timeout,
        "keepalives": 1,
        "keepalives_idle": config.idle_timeout,
    }
    if config.ssl:
        connect_args["sslmode"] = "require"
    return connect_args


def _build_engine(config: DatabaseConfig) -> Engine:
    url = make_url(config.url)
    if url.get_backend_name() == "sqlite":
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_size"] = config.max_connections
            kwargs["max_overflow"] = 0
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        url,
        pool_size=config.max_connections,
        max_overflow=0,
        pool_timeout=config.connect_timeout,
        pool_recycle=config.max_lifetime,
        pool_pre_ping=True,
        connect_args=_postgres_connect_args(config),
    )


class Database:
    """One pooled engine per process, shared by every query object.

    Statements run on worker threads so that independent statements awaited
    together use separate pooled connections.
    """

    def __init__(self, config: DatabaseConfig, engine: Engine | None = None):
        self.config = config
        self.engine = engine or _build_engine(config)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def _fetch_all(self, statement) -> list[dict[str, Any]]:
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(statement)]

    def _write(self, statement, params: list[dict[str, Any]] | None = None) -> tuple[list[dict[str, Any]], int]:
        with self.engine.begin() as conn:
            result = conn.execute(statement, params) if params is not None else conn.execute(statement)
            rows = [dict(row._mapping) for row in result] if result.returns_rows else []
            return rows, result.rowcount

    async def fetch_all(self, statement) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_all, statement)

    async def fetch_one(self, statement) -> dict[str, Any] | None:
        rows = await self.fetch_all(statement)
        return rows[0] if rows else None

    async def scalar(self, statement) -> Any:
        row = await self.fetch_one(statement)
        if row is None:
            return None
        return next(iter(row.values()))

    async def write(self, statement, params: list[dict[str, Any]] | None = None) -> tuple[list[dict[str, Any]], int]:
        return await asyncio.to_thread(self._write, statement, params)

    def _transaction(self, work: Callable[[Connection], T]) -> T:
        with self.engine.begin() as conn:
            return work(conn)

    async def transaction(self, work: Callable[[Connection], T]) -> T:
        """Run `work(conn)` on a worker thread inside one transaction."""
        return await asyncio.to_thread(self._transaction, work)

    async def health_check(self) -> bool:
        try:
            value = await self.scalar(text("SELECT 1 AS health"))
        except SQLAlchemyError as exc:
            logger.warning("db.health.failed", environment=self.config.environment, error=str(exc))
            return False
        return value == 1

    def _table_names(self) -> list[str]:
        return inspect(self.engine).get_table_names()

    async def get_info(self) -> dict[str, Any]:
        healthy = await self.health_check()
        table_count = 0
        if healthy:
            try:
                table_count = len(await asyncio.to_thread(self._table_names))
            except SQLAlchemyError as exc:
                logger.warning("db.info.tables_unavailable", error=str(exc))
        return {
            "environment": self.config.environment,
            "url": mask_database_url(self.config.url),
            "is_healthy": healthy,
            "table_count": table_count,
            "connection_config": {
                "max_connections": self.config.max_connections,
                "ssl": self.config.ssl,
                "idle_timeout": self.config.idle_timeout,
                "max_lifetime": self.config.max_lifetime,
            },
        }

    def _create_schema(self) -> None:
        with self.engine.begin() as conn:
            if self.dialect_name == "postgresql":
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS pg_trgm"))
            metadata_obj.create_all(conn)

    def _drop_schema(self) -> None:
        with self.engine.begin() as conn:
            metadata_obj.drop_all(conn)

    async def init_schema(self) -> None:
        await asyncio.to_thread(self._create_schema)
        logger.info("db.schema.init", environment=self.config.environment, tables=sorted(metadata_obj.tables))

    async def reset_schema(self) -> None:
        if self.config.environment == "production":
            raise ProtectedEnvironmentError("Cannot reset production database")
        await asyncio.to_thread(self._drop_schema)
        await asyncio.to_thread(self._create_schema)
        logger.info("db.schema.reset", environment=self.config.environment)

    async def close(self) -> None:
        await asyncio.to_thread(self.engine.dispose)
        logger.info("db.engine.closed", environment=self.config.environment)


def create_database(config: DatabaseConfig) -> Database:
    if not config.url:
        raise DatabaseConfigError(f"Database URL not configured for environment: {config.environment}")
    database = Database(config)
    logger.info(
        "db.engine.create",
        environment=config.environment,
        url=mask_database_url(config.url),
        max_connections=config.max_connections,
        dialect=database.dialect_name,
    )
    return database


async def check_database_connection(db: Database, retries: int = 3, delay: float = 1.0) -> bool:
    for attempt in range(1, retries + 1):
        if await db.health_check():
            return True
        logger.warning("db.connect.retry", attempt=attempt, max_attempts=retries)
        if attempt < retries:
            await asyncio.sleep(delay)
    return False


async def wait_for_database(db: Database, timeout: float = 30.0, interval: float = 1.0) -> bool:
    logger.info("db.wait.start", timeout_s=timeout)
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if await db.health_check():
            logger.info("db.wait.ready")
            return True
        await asyncio.sleep(interval)
    logger.error("db.wait.timeout", timeout_s=timeout)
    return False
