# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant tasks.

This package runs database tasks (create, drop, migrate, seed, rollback,
revision up/down, redo, schema dump) across every tenant of a batch.
"""

from tenantops.tasks.batch import (
    BatchConfig,
    BatchReport,
    BatchTenantOperator,
    TenantResult,
    TenantStatus,
    attempt,
)
from tenantops.tasks.service import TenantTasks
from tenantops.tasks.tenants import (
    configured_tenants,
    normalize_tenants,
    parse_tenant_list,
    resolve_tenants,
)

__all__ = [
    "BatchConfig",
    "BatchReport",
    "BatchTenantOperator",
    "TenantResult",
    "TenantStatus",
    "TenantTasks",
    "attempt",
    "configured_tenants",
    "normalize_tenants",
    "parse_tenant_list",
    "resolve_tenants",
]
