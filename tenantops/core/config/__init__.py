# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for tenantops.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- TaskInputs: Per-invocation inputs (DB, STEP, VERSION, IGNORE_EMPTY_TENANTS)
- YAML loader: Utilities for loading YAML configuration files

Example:
    >>> from tenantops.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.parallel.concurrency
    1
"""

from tenantops.core.config.settings import (
    DatabaseSettings,
    MigrationSettings,
    ParallelSettings,
    SchemaSettings,
    SeedSettings,
    Settings,
    TaskInputs,
    TenantSettings,
    clear_settings_cache,
    get_settings,
)
from tenantops.core.config.yaml_loader import (
    YAMLLoadError,
    load_tenant_names,
    load_yaml,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "TaskInputs",
    # Subsettings
    "DatabaseSettings",
    "TenantSettings",
    "MigrationSettings",
    "SchemaSettings",
    "ParallelSettings",
    "SeedSettings",
    # YAML utilities
    "load_yaml",
    "load_tenant_names",
    "YAMLLoadError",
]
