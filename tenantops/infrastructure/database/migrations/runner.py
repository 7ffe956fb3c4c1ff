# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migration runner.

This module runs Alembic migrations programmatically against a tenant
connection obtained from TenantDatabaseManager.switch(). The Alembic
environment (env.py) ships with this package; revision scripts come from the
application's MIGRATIONS_VERSIONS_PATH.

Alembic installs ``alembic.context`` and ``alembic.op`` as process-global
proxies while a command runs, so commands in one process are serialized by
a lock. Running batches with PARALLEL_STRATEGY=processes gives each worker
its own Alembic state.

Example:
    from tenantops.infrastructure.database.migrations.runner import MigrationRunner

    runner = MigrationRunner(settings)
    with manager.switch("acme") as conn:
        runner.upgrade(conn, schema=manager.version_table_schema("acme"))
"""

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from alembic.util import CommandError
from sqlalchemy.engine import Connection

from tenantops.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings

logger = logging.getLogger(__name__)

ENV_DIRECTORY = Path(__file__).resolve().parent

_alembic_lock = threading.RLock()


class MigrationRunner:
    """Runs Alembic commands on tenant connections.

    Attributes:
        settings: Application settings containing migration configuration.
    """

    def __init__(self, settings: "Settings") -> None:
        """Initialize the runner.

        Args:
            settings: Application settings containing migration configuration.
        """
        self.settings = settings

    @property
    def versions_path(self) -> Path:
        return self.settings.migrations.versions_path.resolve()

    def _config(
        self,
        connection: Connection | None = None,
        schema: str | None = None,
    ) -> Config:
        """Build an in-memory Alembic config for one command."""
        config = Config()
        config.set_main_option("script_location", str(ENV_DIRECTORY))
        config.set_main_option("path_separator", "os")
        config.set_main_option("version_locations", str(self.versions_path))
        config.attributes["connection"] = connection
        config.attributes["version_table"] = self.settings.migrations.version_table
        config.attributes["version_table_schema"] = schema
        return config

    def script_directory(self) -> ScriptDirectory:
        """Load the application's revision scripts.

        Raises:
            ConfigurationError: If the versions directory does not exist.
        """
        if not self.versions_path.is_dir():
            raise ConfigurationError(
                f"Migrations directory not found: {self.versions_path}"
            )
        return ScriptDirectory.from_config(self._config())

    def check_revision(self, revision: str) -> str:
        """Resolve a revision identifier before any tenant is touched.

        Args:
            revision: Full or partial Alembic revision identifier.

        Returns:
            The full revision identifier.

        Raises:
            ConfigurationError: If the revision is unknown or ambiguous.
        """
        script = self.script_directory()
        try:
            resolved = script.get_revision(revision)
        except CommandError as e:
            raise ConfigurationError(f"Unknown revision {revision!r}: {e}") from e
        if resolved is None:
            raise ConfigurationError(f"Unknown revision {revision!r}")
        return resolved.revision

    def _run(
        self,
        fn: Callable[..., Any],
        connection: Connection,
        schema: str | None,
        target: str,
    ) -> None:
        config = self._config(connection, schema)
        with _alembic_lock:
            fn(config, target)
        connection.commit()

    def current(self, connection: Connection, schema: str | None = None) -> tuple[str, ...]:
        """Get the revisions currently applied to a tenant.

        Args:
            connection: Tenant connection.
            schema: Schema of the version table, if any.

        Returns:
            Current head revision identifiers; empty when nothing is applied.
        """
        context = MigrationContext.configure(
            connection,
            opts={
                "version_table": self.settings.migrations.version_table,
                "version_table_schema": schema,
            },
        )
        return tuple(context.get_current_heads())

    def is_applied(
        self,
        connection: Connection,
        revision: str,
        schema: str | None = None,
    ) -> bool:
        """Check whether a revision is at or below the tenant's current heads."""
        heads = self.current(connection, schema)
        if not heads:
            return False

        script = self.script_directory()
        target = script.get_revision(revision)
        applied = {rev.revision for rev in script.iterate_revisions(heads, "base")}
        return target is not None and target.revision in applied

    def upgrade(
        self,
        connection: Connection,
        schema: str | None = None,
        revision: str = "head",
    ) -> None:
        """Apply pending migrations up to ``revision``.

        Args:
            connection: Tenant connection.
            schema: Schema of the version table, if any.
            revision: Target revision, ``head`` by default.
        """
        before = self.current(connection, schema)
        self._run(command.upgrade, connection, schema, revision)
        logger.info(
            "Upgraded to %s: %s -> %s",
            revision,
            ", ".join(before) or "base",
            ", ".join(self.current(connection, schema)) or "base",
        )

    def downgrade(
        self,
        connection: Connection,
        steps: int,
        schema: str | None = None,
    ) -> None:
        """Revert the last ``steps`` migrations.

        Args:
            connection: Tenant connection.
            steps: Number of revisions to revert (at least 1).
            schema: Schema of the version table, if any.
        """
        if steps < 1:
            raise ConfigurationError(f"STEP must be a positive integer, got {steps}")
        self._run(command.downgrade, connection, schema, f"-{steps}")
        logger.info("Downgraded %d revision(s)", steps)

    def run_up(
        self,
        connection: Connection,
        revision: str,
        schema: str | None = None,
    ) -> bool:
        """Migrate up to ``revision`` unless it is already applied.

        Alembic applies any pending ancestors of the revision along with it.

        Returns:
            True if migrations ran, False if the revision was already applied.
        """
        if self.is_applied(connection, revision, schema):
            logger.info("Revision %s already applied, skipping", revision)
            return False
        self._run(command.upgrade, connection, schema, revision)
        logger.info("Ran revision %s up", revision)
        return True

    def run_down(
        self,
        connection: Connection,
        revision: str,
        schema: str | None = None,
    ) -> bool:
        """Revert ``revision`` unless it is not applied.

        Downgrades to the revision's parent, so revisions applied on top of
        it are reverted first.

        Returns:
            True if migrations ran, False if the revision was not applied.
        """
        if not self.is_applied(connection, revision, schema):
            logger.info("Revision %s not applied, skipping", revision)
            return False

        target = self.script_directory().get_revision(revision)
        if target.down_revision is None:
            destination = "base"
        elif isinstance(target.down_revision, str):
            destination = target.down_revision
        else:
            # Merge revision: step back through all of its parents
            destination = f"{target.revision}-1"

        self._run(command.downgrade, connection, schema, destination)
        logger.info("Ran revision %s down to %s", revision, destination)
        return True
