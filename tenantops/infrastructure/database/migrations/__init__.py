# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

This package contains the Alembic environment used for tenant databases and
the runner that drives it programmatically.
"""

from tenantops.infrastructure.database.migrations.runner import (
    ENV_DIRECTORY,
    MigrationRunner,
)

__all__ = ["ENV_DIRECTORY", "MigrationRunner"]
