# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database seed package.

Seeds are application code; this package only resolves and runs them
inside a tenant.
"""

from tenantops.infrastructure.database.seeds.loader import (
    SeedFunction,
    load_seed_function,
    seed_tenant,
)

__all__ = ["SeedFunction", "load_seed_function", "seed_tenant"]
