# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine construction for the default database and tenant databases.

All engines are synchronous SQLAlchemy 2.0 engines: tenant work runs in
worker threads or processes, and Alembic drives migrations through a sync
connection.

Example:
    from tenantops.infrastructure.database.connection import create_database_engine

    engine = create_database_engine(settings.database.url, settings)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
"""

from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from tenantops.core.exceptions import TenantOpsError

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings


class DatabaseError(TenantOpsError):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the database error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def create_database_engine(
    url: str,
    settings: "Settings",
    **overrides: Any,
) -> Engine:
    """Create a sync engine with the configured pool options.

    SQLite engines skip the pool sizing options and allow connections to be
    used from worker threads.

    Args:
        url: SQLAlchemy database URL.
        settings: Application settings containing pool configuration.
        **overrides: Extra keyword arguments passed to create_engine.

    Returns:
        A new SQLAlchemy Engine.

    Raises:
        DatabaseError: If the engine cannot be created.
    """
    options: dict[str, Any] = {
        "echo": settings.database.echo,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.database.pool_size
        options["max_overflow"] = settings.database.max_overflow
        options["pool_recycle"] = 1800

    options.update(overrides)

    try:
        return create_engine(url, **options)
    except (SQLAlchemyError, ImportError) as e:
        raise DatabaseError(f"Failed to create engine for {_redact(url)}", e) from e


def check_connection(engine: Engine) -> bool:
    """Check if a database is reachable.

    Args:
        engine: Engine to check.

    Returns:
        True if ``SELECT 1`` succeeds, False otherwise.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def _redact(url: str) -> str:
    """Hide the password part of a URL for error messages."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except SQLAlchemyError:
        return "<invalid url>"
