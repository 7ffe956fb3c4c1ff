# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alembic migration environment for tenant databases.

Alembic loads this file for every migration command issued by
MigrationRunner. The runner passes the tenant connection and version table
location through ``Config.attributes``; this environment never opens
connections of its own.

Revision scripts live in the application (MIGRATIONS_VERSIONS_PATH) and use
``from alembic import op`` as usual.
"""

from alembic import context

config = context.config

connection = config.attributes.get("connection")
if connection is None:
    raise RuntimeError(
        "Tenant migrations must be run through tenantops "
        "(no connection in Config.attributes)."
    )


def run_migrations_online() -> None:
    """Run migrations on the tenant connection supplied by the runner."""
    context.configure(
        connection=connection,
        target_metadata=config.attributes.get("target_metadata"),
        version_table=config.attributes.get("version_table", "alembic_version"),
        version_table_schema=config.attributes.get("version_table_schema"),
        transaction_per_migration=True,
    )

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError("Offline (--sql) mode is not supported for tenant migrations.")

run_migrations_online()
