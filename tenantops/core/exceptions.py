# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception hierarchy for tenantops.

- TenantOpsError: Base exception for all tenantops errors
- ConfigurationError: Invalid or missing configuration, raised before any
  tenant is touched
- TenantError: Base for errors tied to a single tenant

Tenant-specific errors (TenantNotFoundError, TenantExistsError) live in
tenantops.infrastructure.database.tenant_manager next to the code that
raises them.
"""


class TenantOpsError(Exception):
    """Base exception for all tenantops errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
        """
        super().__init__(message)
        self.message = message


class ConfigurationError(TenantOpsError):
    """Raised when a task cannot start because of missing or invalid input."""


class TenantError(TenantOpsError):
    """Base exception for errors concerning a single tenant.

    Attributes:
        tenant: The tenant identifier the error refers to.
    """

    def __init__(self, tenant: str, message: str) -> None:
        """Initialize the error.

        Args:
            tenant: The tenant identifier the error refers to.
            message: Human-readable error description.
        """
        super().__init__(message)
        self.tenant = tenant
