# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant list resolution.

Precedence, first non-empty source wins:

1. Explicit override (``DB`` / ``--tenants``), comma-separated
2. TENANT_NAMES
3. TENANT_NAMES_FILE (YAML, ``tenants:`` list)
4. TENANT_NAMES_QUERY run against the default database

Identifiers are trimmed, blanks and duplicates dropped, and the default
tenant removed. No source at all gives an empty list.
"""

from typing import TYPE_CHECKING, Iterable

from tenantops.core.config.yaml_loader import load_tenant_names
from tenantops.infrastructure.database.tenant_manager import get_tenant_manager
from tenantops.utils.logging import get_logger

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings
    from tenantops.infrastructure.database.tenant_manager import TenantDatabaseManager

logger = get_logger(__name__)


def parse_tenant_list(value: str | None) -> list[str]:
    """Split a comma-separated tenant list, trimming each identifier."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def normalize_tenants(tenants: Iterable[str], default_tenant: str | None = None) -> list[str]:
    """Trim, de-duplicate (keeping first occurrence) and drop the default tenant."""
    seen: set[str] = set()
    result: list[str] = []
    for tenant in tenants:
        tenant = tenant.strip()
        if not tenant or tenant == default_tenant or tenant in seen:
            continue
        seen.add(tenant)
        result.append(tenant)
    return result


def configured_tenants(
    settings: "Settings",
    manager: "TenantDatabaseManager | None" = None,
) -> list[str]:
    """Read the configured tenant list, ignoring any override."""
    tenant_settings = settings.tenant

    if tenant_settings.names:
        return list(tenant_settings.names)

    if tenant_settings.names_file is not None:
        return load_tenant_names(tenant_settings.names_file)

    if tenant_settings.names_query:
        manager = manager or get_tenant_manager(settings)
        return manager.query_tenant_names(tenant_settings.names_query)

    return []


def resolve_tenants(
    settings: "Settings",
    override: str | None = None,
    manager: "TenantDatabaseManager | None" = None,
) -> list[str]:
    """Resolve the tenants of a batch.

    Args:
        settings: Application settings.
        override: Comma-separated tenant list that replaces the configured
            one when it names at least one tenant.
        manager: Manager used for TENANT_NAMES_QUERY.

    Returns:
        Tenant identifiers in order.
    """
    explicit = parse_tenant_list(override)
    source = "override" if explicit else "configuration"
    candidates = explicit or configured_tenants(settings, manager)

    tenants = normalize_tenants(candidates, settings.tenant.default_tenant)
    logger.debug("Resolved tenants", source=source, tenants=tenants)
    return tenants
