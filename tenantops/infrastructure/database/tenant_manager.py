# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database management.

This module provides creation, removal and connection switching for tenant
namespaces. The isolation strategy (PostgreSQL schema, PostgreSQL database or
SQLite file) is chosen by TENANT_STRATEGY and implemented by an adapter.

Example:
    from tenantops.infrastructure.database import TenantDatabaseManager

    manager = TenantDatabaseManager(settings)

    # Create a tenant
    manager.create("acme")

    # Run statements inside the tenant
    with manager.switch("acme") as conn:
        conn.execute(text("SELECT count(*) FROM users"))

    # ORM session inside the tenant
    with manager.session("acme") as session:
        session.add(User(name="admin"))

    # Cleanup on shutdown
    manager.close_all()
"""

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tenantops.core.exceptions import TenantError
from tenantops.infrastructure.database.adapters import TenantAdapter, build_adapter
from tenantops.infrastructure.database.connection import (
    DatabaseError,
    create_database_engine,
)
from tenantops.utils.logging import get_logger

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings

logger = get_logger(__name__)


class TenantNotFoundError(TenantError):
    """Raised when a tenant namespace does not exist.

    Attributes:
        tenant: The tenant that was not found.
    """

    def __init__(self, tenant: str) -> None:
        """Initialize the error.

        Args:
            tenant: The tenant that was not found.
        """
        super().__init__(tenant, f"Tenant not found: {tenant}")


class TenantExistsError(TenantError):
    """Raised when creating a tenant that already exists.

    Attributes:
        tenant: The tenant that already exists.
    """

    def __init__(self, tenant: str) -> None:
        """Initialize the error.

        Args:
            tenant: The tenant that already exists.
        """
        super().__init__(tenant, f"Tenant already exists: {tenant}")


class TenantDatabaseManager:
    """Manages tenant namespaces and connections for one set of settings.

    The default database engine is created lazily. Tenant engines (for
    strategies that need them) are cached by the adapter. All methods are
    safe to call from several worker threads at once.

    Attributes:
        settings: Application settings.
    """

    def __init__(
        self,
        settings: "Settings",
        adapter: TenantAdapter | None = None,
    ) -> None:
        """Initialize the tenant database manager.

        Args:
            settings: Application settings.
            adapter: Optional adapter instance. If not provided, one is
                built for settings.tenant.strategy.
        """
        self.settings = settings
        self._engine: Engine | None = None
        self._adapter = adapter
        self._lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        """Engine for the default database."""
        with self._lock:
            if self._engine is None:
                self._engine = create_database_engine(
                    self.settings.database.url, self.settings
                )
            return self._engine

    @property
    def adapter(self) -> TenantAdapter:
        """Adapter for the configured isolation strategy."""
        engine = self.engine
        with self._lock:
            if self._adapter is None:
                self._adapter = build_adapter(self.settings, engine)
            return self._adapter

    def exists(self, tenant: str) -> bool:
        """Check if a tenant namespace exists.

        Args:
            tenant: Tenant identifier.

        Returns:
            True if the tenant exists.
        """
        return self.adapter.exists(tenant)

    def create(self, tenant: str) -> None:
        """Create a tenant namespace.

        Args:
            tenant: Tenant identifier.

        Raises:
            TenantExistsError: If the tenant already exists.
        """
        if self.adapter.exists(tenant):
            raise TenantExistsError(tenant)
        self.adapter.create(tenant)

    def drop(self, tenant: str) -> None:
        """Drop a tenant namespace and all of its data.

        Args:
            tenant: Tenant identifier.

        Raises:
            TenantNotFoundError: If the tenant does not exist.
        """
        if not self.adapter.exists(tenant):
            raise TenantNotFoundError(tenant)
        self.adapter.drop(tenant)

    @contextmanager
    def switch(self, tenant: str) -> Iterator[Connection]:
        """Get a connection scoped to a tenant.

        The connection is committed on success and rolled back on exception.

        Args:
            tenant: Tenant identifier.

        Yields:
            Connection whose unqualified names resolve inside the tenant.

        Raises:
            TenantNotFoundError: If the tenant does not exist.
        """
        if not self.adapter.exists(tenant):
            raise TenantNotFoundError(tenant)

        logger.debug("Switching to tenant", tenant=tenant)
        with self.adapter.connect(tenant) as connection:
            try:
                yield connection
                connection.commit()
            except Exception:
                connection.rollback()
                raise

    @contextmanager
    def session(self, tenant: str) -> Iterator[Session]:
        """Get an ORM session bound to a tenant connection.

        The session is committed on success and rolled back on exception.

        Args:
            tenant: Tenant identifier.

        Yields:
            Session for the tenant.

        Raises:
            TenantNotFoundError: If the tenant does not exist.
        """
        with self.switch(tenant) as connection:
            session = Session(bind=connection, expire_on_commit=False, autoflush=False)
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def version_table_schema(self, tenant: str) -> str | None:
        """Schema holding Alembic's version table for a tenant."""
        return self.adapter.version_table_schema(tenant)

    def query_tenant_names(self, query: str) -> list[str]:
        """Run a tenant list query against the default database.

        Args:
            query: SQL statement whose first column holds tenant identifiers.

        Returns:
            Values of the first column, as strings.

        Raises:
            DatabaseError: If the query fails.
        """
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(query)).all()
        except SQLAlchemyError as e:
            raise DatabaseError("Tenant list query failed", e) from e
        return [str(row[0]) for row in rows if row[0] is not None]

    def close_all(self) -> None:
        """Dispose the default engine and every tenant engine."""
        with self._lock:
            adapter, engine = self._adapter, self._engine
            self._adapter = None
            self._engine = None
        if adapter is not None:
            adapter.dispose()
        if engine is not None:
            engine.dispose()


# =============================================================================
# PER-PROCESS MANAGER CACHE
# =============================================================================

# Worker processes rebuild their own engines; threads share the process's.
_managers: dict[str, TenantDatabaseManager] = {}
_managers_lock = threading.Lock()


def get_tenant_manager(settings: "Settings") -> TenantDatabaseManager:
    """Get the TenantDatabaseManager for these settings in this process.

    Per-tenant operations are module-level functions so they can run in a
    process pool. They look their manager up here instead of receiving it,
    which means engines are created once per process and shared by all
    threads of that process.

    Args:
        settings: Application settings.

    Returns:
        Process-wide TenantDatabaseManager for the settings.
    """
    key = f"{settings.database.url}|{settings.model_dump_json()}"
    with _managers_lock:
        manager = _managers.get(key)
        if manager is None:
            manager = TenantDatabaseManager(settings)
            _managers[key] = manager
        return manager


def reset_tenant_managers() -> None:
    """Close and forget every cached manager in this process.

    Primarily used for testing to ensure clean state between tests.
    """
    with _managers_lock:
        managers = list(_managers.values())
        _managers.clear()
    for manager in managers:
        manager.close_all()
