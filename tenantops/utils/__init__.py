# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for tenantops.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- console: Serialized human-readable task output with rich
"""

from tenantops.utils.console import Reporter
from tenantops.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Console
    "Reporter",
]
