# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Logging setup for tenant tasks.

Task code logs through structlog with keyword context (tenant, revision,
task). The migration runner and the seed loader log through the standard
library; both end up on stderr, leaving stdout to the task reporter.

Output is a human-readable console format when ENVIRONMENT=development or
DEBUG is set, and one JSON object per line otherwise, for CI job logs.

Example:
    >>> from tenantops.utils.logging import setup_logging, get_logger
    >>> from tenantops.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> logger.info("Tenant migrated", tenant="acme", revision="0002")
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings

# Library loggers that would otherwise echo every statement and revision step
QUIET_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "alembic",
    "alembic.runtime.migration",
)


def _renderers(settings: "Settings") -> list[Processor]:
    if settings.is_development or settings.debug:
        return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: "Settings") -> None:
    """Configure structlog and the stdlib root logger for one CLI run.

    Args:
        settings: Settings providing ``log_level``, ``environment`` and ``debug``.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        *_renderers(settings),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("tenantops").setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return the structlog logger of a tenantops module."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Attach fields to every log line until clear_context() is called.

    cli.main() binds ``command`` (e.g. ``migrate``) before running a task,
    so batch and per-tenant lines of one invocation can be told apart.

    Args:
        **kwargs: Fields to attach.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop the fields bound by bind_context(); cli.main() calls it on exit."""
    structlog.contextvars.clear_contextvars()
