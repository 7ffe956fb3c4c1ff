# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant isolation adapters.

An adapter knows how one isolation strategy creates, drops and connects to a
tenant namespace:

- PostgresSchemaAdapter: one PostgreSQL schema per tenant in the default
  database, selected with ``SET search_path``
- PostgresDatabaseAdapter: one PostgreSQL database per tenant, each with its
  own engine
- SQLiteAdapter: one SQLite file per tenant

Adapters do not check whether a tenant exists before acting; that is the
job of TenantDatabaseManager, which turns the answer into
TenantNotFoundError / TenantExistsError.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateSchema, DropSchema

from tenantops.core.exceptions import ConfigurationError
from tenantops.infrastructure.database.connection import create_database_engine
from tenantops.utils.logging import get_logger

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings

logger = get_logger(__name__)


class TenantAdapter(ABC):
    """Base class for tenant isolation strategies.

    Subclasses that need one engine per tenant use the lock-guarded engine
    cache provided here; engines are shared by all worker threads.
    """

    def __init__(self, settings: "Settings", engine: Engine) -> None:
        """Initialize the adapter.

        Args:
            settings: Application settings.
            engine: Engine for the default database.
        """
        self._settings = settings
        self._engine = engine
        self._tenant_engines: dict[str, Engine] = {}
        self._lock = threading.Lock()

    @abstractmethod
    def exists(self, tenant: str) -> bool:
        """Check whether the tenant namespace exists."""

    @abstractmethod
    def create(self, tenant: str) -> None:
        """Create the tenant namespace."""

    @abstractmethod
    def drop(self, tenant: str) -> None:
        """Remove the tenant namespace and everything in it."""

    @abstractmethod
    def connect(self, tenant: str) -> Iterator[Connection]:
        """Yield a connection scoped to the tenant."""

    def version_table_schema(self, tenant: str) -> str | None:
        """Schema holding Alembic's version table for the tenant."""
        return None

    def _tenant_url(self, tenant: str) -> str:
        raise NotImplementedError

    def _engine_for(self, tenant: str) -> Engine:
        with self._lock:
            if tenant not in self._tenant_engines:
                self._tenant_engines[tenant] = create_database_engine(
                    self._tenant_url(tenant), self._settings
                )
            return self._tenant_engines[tenant]

    def _dispose_tenant_engine(self, tenant: str) -> None:
        with self._lock:
            engine = self._tenant_engines.pop(tenant, None)
        if engine is not None:
            engine.dispose()

    def dispose(self) -> None:
        """Dispose every cached tenant engine."""
        with self._lock:
            engines = list(self._tenant_engines.values())
            self._tenant_engines.clear()
        for engine in engines:
            engine.dispose()


class PostgresSchemaAdapter(TenantAdapter):
    """One PostgreSQL schema per tenant.

    Each switch checks out its own connection and sets its search path, so
    concurrent workers never see each other's tenant. The search path is reset
    before the connection goes back to the pool.
    """

    def _quote(self, name: str) -> str:
        return self._engine.dialect.identifier_preparer.quote_identifier(name)

    def exists(self, tenant: str) -> bool:
        with self._engine.connect() as conn:
            return tenant in inspect(conn).get_schema_names()

    def create(self, tenant: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(CreateSchema(tenant))
        logger.info("Created tenant schema", tenant=tenant)

    def drop(self, tenant: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(DropSchema(tenant, cascade=True))
        logger.info("Dropped tenant schema", tenant=tenant)

    @contextmanager
    def connect(self, tenant: str) -> Iterator[Connection]:
        schemas = [tenant, *self._settings.tenant.persistent_schemas]
        search_path = ", ".join(self._quote(schema) for schema in schemas)

        with self._engine.connect() as conn:
            conn.execute(text(f"SET search_path TO {search_path}"))
            conn.commit()
            try:
                yield conn
            finally:
                self._reset_search_path(conn)

    def _reset_search_path(self, conn: Connection) -> None:
        try:
            if conn.in_transaction():
                conn.rollback()
            conn.execute(text("RESET search_path"))
            conn.commit()
        except SQLAlchemyError:
            # Never hand a connection with a tenant search path back to the pool
            conn.invalidate()

    def version_table_schema(self, tenant: str) -> str | None:
        return tenant


class PostgresDatabaseAdapter(TenantAdapter):
    """One PostgreSQL database per tenant.

    CREATE/DROP DATABASE cannot run inside a transaction, so they go through
    an autocommit connection on the default database.
    """

    def _quote(self, name: str) -> str:
        return self._engine.dialect.identifier_preparer.quote_identifier(name)

    def _tenant_url(self, tenant: str) -> str:
        url = make_url(self._settings.database.url).set(database=tenant)
        return url.render_as_string(hide_password=False)

    def exists(self, tenant: str) -> bool:
        with self._engine.connect() as conn:
            row = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": tenant},
            ).first()
        return row is not None

    def create(self, tenant: str) -> None:
        with self._engine.connect() as conn:
            conn = conn.execution_options(isolation_level="AUTOCOMMIT")
            conn.execute(text(f"CREATE DATABASE {self._quote(tenant)}"))
        logger.info("Created tenant database", tenant=tenant)

    def drop(self, tenant: str) -> None:
        self._dispose_tenant_engine(tenant)
        with self._engine.connect() as conn:
            conn = conn.execution_options(isolation_level="AUTOCOMMIT")
            conn.execute(text(f"DROP DATABASE {self._quote(tenant)}"))
        logger.info("Dropped tenant database", tenant=tenant)

    @contextmanager
    def connect(self, tenant: str) -> Iterator[Connection]:
        with self._engine_for(tenant).connect() as conn:
            yield conn


class SQLiteAdapter(TenantAdapter):
    """One SQLite file per tenant under TENANT_SQLITE_DIRECTORY."""

    def _path(self, tenant: str) -> Path:
        if not tenant or tenant.startswith(".") or "/" in tenant or "\\" in tenant:
            raise ConfigurationError(f"Invalid tenant identifier for SQLite: {tenant!r}")
        return self._settings.tenant.sqlite_directory / f"{tenant}.sqlite3"

    def _tenant_url(self, tenant: str) -> str:
        return f"sqlite:///{self._path(tenant)}"

    def exists(self, tenant: str) -> bool:
        return self._path(tenant).is_file()

    def create(self, tenant: str) -> None:
        path = self._path(tenant)
        path.parent.mkdir(parents=True, exist_ok=True)
        # An empty file is a valid, empty SQLite database
        path.touch(exist_ok=False)
        logger.info("Created tenant database file", tenant=tenant, path=str(path))

    def drop(self, tenant: str) -> None:
        self._dispose_tenant_engine(tenant)
        path = self._path(tenant)
        path.unlink()
        logger.info("Removed tenant database file", tenant=tenant, path=str(path))

    @contextmanager
    def connect(self, tenant: str) -> Iterator[Connection]:
        with self._engine_for(tenant).connect() as conn:
            yield conn


ADAPTERS: dict[str, type[TenantAdapter]] = {
    "schema": PostgresSchemaAdapter,
    "database": PostgresDatabaseAdapter,
    "sqlite": SQLiteAdapter,
}


def build_adapter(settings: "Settings", engine: Engine) -> TenantAdapter:
    """Create the adapter for the configured tenant strategy.

    Args:
        settings: Application settings.
        engine: Engine for the default database.

    Returns:
        Adapter instance for settings.tenant.strategy.
    """
    return ADAPTERS[settings.tenant.strategy](settings, engine)
