# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-tenant operations.

Each operation takes the settings first and the tenant second, so a task
binds the settings (and any extra arguments) with functools.partial and hands
the operator a one-argument callable. Operations are module-level functions
that look up the process's TenantDatabaseManager, which keeps them usable
with PARALLEL_STRATEGY=processes.
"""

from typing import TYPE_CHECKING

from tenantops.infrastructure.database.migrations.runner import MigrationRunner
from tenantops.infrastructure.database.seeds.loader import seed_tenant as run_seed
from tenantops.infrastructure.database.tenant_manager import get_tenant_manager

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings


def create_tenant(settings: "Settings", tenant: str) -> None:
    """Create a tenant, then migrate and seed it as configured.

    Raises:
        TenantExistsError: If the tenant already exists.
    """
    get_tenant_manager(settings).create(tenant)

    if settings.tenant.migrate_on_create:
        migrate_tenant(settings, tenant)
    if settings.tenant.seed_after_create:
        seed_tenant(settings, tenant)


def drop_tenant(settings: "Settings", tenant: str) -> None:
    """Drop a tenant.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
    """
    get_tenant_manager(settings).drop(tenant)


def migrate_tenant(settings: "Settings", tenant: str) -> None:
    """Apply all pending migrations to a tenant.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
    """
    manager = get_tenant_manager(settings)
    with manager.switch(tenant) as connection:
        MigrationRunner(settings).upgrade(
            connection, schema=manager.version_table_schema(tenant)
        )


def rollback_tenant(settings: "Settings", tenant: str, *, steps: int) -> None:
    """Revert the last ``steps`` migrations of a tenant.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
    """
    manager = get_tenant_manager(settings)
    with manager.switch(tenant) as connection:
        MigrationRunner(settings).downgrade(
            connection, steps, schema=manager.version_table_schema(tenant)
        )


def migrate_tenant_up(settings: "Settings", tenant: str, *, revision: str) -> None:
    """Run one revision up for a tenant.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
    """
    manager = get_tenant_manager(settings)
    with manager.switch(tenant) as connection:
        MigrationRunner(settings).run_up(
            connection, revision, schema=manager.version_table_schema(tenant)
        )


def migrate_tenant_down(settings: "Settings", tenant: str, *, revision: str) -> None:
    """Run one revision down for a tenant.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
    """
    manager = get_tenant_manager(settings)
    with manager.switch(tenant) as connection:
        MigrationRunner(settings).run_down(
            connection, revision, schema=manager.version_table_schema(tenant)
        )


def seed_tenant(settings: "Settings", tenant: str) -> None:
    """Run the configured seed function inside a tenant.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
    """
    run_seed(get_tenant_manager(settings), tenant, settings)
