# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""tenantops - database tasks for multi-tenant applications.

Creates, drops, migrates, seeds and rolls back every tenant of an
application whose tenants live in PostgreSQL schemas, PostgreSQL databases
or SQLite files, with Alembic as the migration engine.
"""

__version__ = "0.1.0"
