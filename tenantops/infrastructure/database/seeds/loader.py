# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant seed data loading.

The application provides its seed function as an import path in
SEED_FUNCTION (``package.module:function``). The function receives a
SQLAlchemy Session bound to the tenant and adds whatever rows it needs; the
session is committed by TenantDatabaseManager.session().

Example:
    # myapp/seeds.py
    def seed(session: Session) -> None:
        session.add_all([Role(code="admin"), Role(code="member")])

    # environment
    SEED_FUNCTION=myapp.seeds:seed
"""

import importlib
import logging
from typing import TYPE_CHECKING, Any, Callable

from sqlalchemy.orm import Session

from tenantops.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings
    from tenantops.infrastructure.database.tenant_manager import TenantDatabaseManager

logger = logging.getLogger(__name__)

SeedFunction = Callable[[Session], Any]


def load_seed_function(path: str | None) -> SeedFunction:
    """Resolve a ``module:function`` import path.

    Args:
        path: Import path of the seed function.

    Returns:
        The seed callable.

    Raises:
        ConfigurationError: If the path is unset, malformed, cannot be
            imported or does not name a callable.
    """
    if not path:
        raise ConfigurationError("SEED_FUNCTION is not configured.")

    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(
            f"SEED_FUNCTION must look like 'package.module:function', got {path!r}"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import seed module {module_name}: {e}") from e

    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise ConfigurationError(f"Seed function {path} not found")

    if not callable(target):
        raise ConfigurationError(f"Seed function {path} is not callable")

    return target


def seed_tenant(
    manager: "TenantDatabaseManager",
    tenant: str,
    settings: "Settings",
) -> None:
    """Run the configured seed function inside a tenant.

    Args:
        manager: Tenant database manager.
        tenant: Tenant identifier.
        settings: Application settings containing SEED_FUNCTION.

    Raises:
        TenantNotFoundError: If the tenant does not exist.
        ConfigurationError: If the seed function cannot be resolved.
    """
    seed = load_seed_function(settings.seed.function)

    with manager.session(tenant) as session:
        seed(session)

    logger.info("Seeded tenant %s with %s", tenant, settings.seed.function)
