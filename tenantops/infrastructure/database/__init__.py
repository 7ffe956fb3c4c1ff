# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for tenant namespaces.

This package provides sync SQLAlchemy access to:
- The default database: tenant list queries and schema dumps
- Tenant namespaces: PostgreSQL schemas, PostgreSQL databases or SQLite
  files, depending on TENANT_STRATEGY

Example:
    from tenantops.infrastructure.database import TenantDatabaseManager

    manager = TenantDatabaseManager(settings)
    manager.create("acme")
    with manager.switch("acme") as conn:
        conn.execute(text("SELECT 1"))
"""

from tenantops.infrastructure.database.adapters import (
    PostgresDatabaseAdapter,
    PostgresSchemaAdapter,
    SQLiteAdapter,
    TenantAdapter,
    build_adapter,
)
from tenantops.infrastructure.database.connection import (
    DatabaseError,
    check_connection,
    create_database_engine,
)
from tenantops.infrastructure.database.schema_dump import dump_schema
from tenantops.infrastructure.database.tenant_manager import (
    TenantDatabaseManager,
    TenantExistsError,
    TenantNotFoundError,
    get_tenant_manager,
    reset_tenant_managers,
)

__all__ = [
    # Connections
    "DatabaseError",
    "check_connection",
    "create_database_engine",
    # Adapters
    "TenantAdapter",
    "PostgresSchemaAdapter",
    "PostgresDatabaseAdapter",
    "SQLiteAdapter",
    "build_adapter",
    # Tenant database
    "TenantDatabaseManager",
    "TenantNotFoundError",
    "TenantExistsError",
    "get_tenant_manager",
    "reset_tenant_managers",
    # Schema dump
    "dump_schema",
]
