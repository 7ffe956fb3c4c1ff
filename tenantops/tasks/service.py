# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant tasks.

TenantTasks exposes one method per command. Each method checks its inputs
(raising ConfigurationError before any tenant is touched), resolves the
tenant list, and hands a per-tenant operation to BatchTenantOperator.
Migration tasks pass the schema dump as the batch's finalization step.

Example:
    from tenantops.core.config import TaskInputs, get_settings
    from tenantops.tasks import TenantTasks

    tasks = TenantTasks(get_settings(), TaskInputs(db="acme,beta"))
    tasks.migrate()
    tasks.rollback(step=2)
"""

from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from tenantops.core.config.settings import TaskInputs
from tenantops.core.exceptions import ConfigurationError
from tenantops.infrastructure.database.migrations.runner import MigrationRunner
from tenantops.infrastructure.database.schema_dump import dump_schema
from tenantops.infrastructure.database.seeds.loader import load_seed_function
from tenantops.infrastructure.database.tenant_manager import (
    TenantDatabaseManager,
    get_tenant_manager,
)
from tenantops.tasks import operations
from tenantops.tasks.batch import BatchConfig, BatchReport, BatchTenantOperator
from tenantops.tasks.tenants import resolve_tenants
from tenantops.utils.console import Reporter
from tenantops.utils.logging import get_logger

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings

logger = get_logger(__name__)


class TenantTasks:
    """Per-tenant database tasks.

    Attributes:
        settings: Application settings.
        inputs: Per-invocation inputs (DB, STEP, VERSION, IGNORE_EMPTY_TENANTS).
        reporter: Console reporter.
        operator: Batch operator used by every task.
        manager: Tenant database manager of this process.
        runner: Alembic migration runner.
    """

    def __init__(
        self,
        settings: "Settings",
        inputs: TaskInputs | None = None,
        reporter: Reporter | None = None,
        operator: BatchTenantOperator | None = None,
        manager: TenantDatabaseManager | None = None,
    ) -> None:
        """Initialize the tasks.

        Args:
            settings: Application settings.
            inputs: Task inputs. Read from the environment if omitted.
            reporter: Console reporter. A default one is created if omitted.
            operator: Batch operator. Built from settings and inputs if omitted.
            manager: Tenant database manager. The process-wide one if omitted.
        """
        self.settings = settings
        self.inputs = inputs if inputs is not None else TaskInputs()
        self.reporter = reporter or Reporter()
        self.operator = operator or BatchTenantOperator(
            BatchConfig.from_settings(settings, self.inputs),
            reporter=self.reporter,
        )
        self.manager = manager or get_tenant_manager(settings)
        self.runner = MigrationRunner(settings)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def tenants(self) -> list[str]:
        """Resolve the tenants of the next batch."""
        return resolve_tenants(self.settings, self.inputs.db, self.manager)

    def _dump_after_migration(self) -> Callable[[], object] | None:
        if not self.settings.schema_dump.dump_after_migration:
            return None
        return self.dump_schema

    def _require_version(self, task: str, version: str | None) -> str:
        version = version or self.inputs.version
        if not version:
            raise ConfigurationError(f"VERSION is required for {task}")
        return self.runner.check_revision(version)

    def _require_step(self, step: int | None) -> int:
        step = self.inputs.step if step is None else step
        if step < 1:
            raise ConfigurationError(f"STEP must be a positive integer, got {step}")
        return step

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tenants(self) -> list[str]:
        """Print and return the resolved tenant list."""
        tenants = self.tenants()
        self.operator.warn_if_empty("list", tenants)
        for tenant in tenants:
            self.reporter.announce(tenant)
        return tenants

    def create(self) -> BatchReport:
        """Create every tenant, migrating and seeding as configured."""
        if self.settings.tenant.migrate_on_create:
            self.runner.script_directory()
        if self.settings.tenant.seed_after_create:
            load_seed_function(self.settings.seed.function)

        return self.operator.run(
            "create",
            self.tenants(),
            partial(operations.create_tenant, self.settings),
            verb="Creating",
        )

    def drop(self) -> BatchReport:
        """Drop every tenant."""
        return self.operator.run(
            "drop",
            self.tenants(),
            partial(operations.drop_tenant, self.settings),
            verb="Dropping",
        )

    def migrate(self) -> BatchReport:
        """Migrate every tenant to head."""
        self.runner.script_directory()
        return self.operator.run(
            "migrate",
            self.tenants(),
            partial(operations.migrate_tenant, self.settings),
            verb="Migrating",
            finalize=self._dump_after_migration(),
        )

    def seed(self) -> BatchReport:
        """Seed every tenant."""
        load_seed_function(self.settings.seed.function)
        return self.operator.run(
            "seed",
            self.tenants(),
            partial(operations.seed_tenant, self.settings),
            verb="Seeding",
        )

    def rollback(self, step: int | None = None) -> BatchReport:
        """Revert the last STEP migrations of every tenant."""
        steps = self._require_step(step)
        self.runner.script_directory()
        return self.operator.run(
            "rollback",
            self.tenants(),
            partial(operations.rollback_tenant, self.settings, steps=steps),
            verb="Rolling back",
            finalize=self._dump_after_migration(),
        )

    def migrate_up(self, version: str | None = None) -> BatchReport:
        """Run revision VERSION up for every tenant."""
        revision = self._require_version("migrate:up", version)
        return self.operator.run(
            "migrate:up",
            self.tenants(),
            partial(operations.migrate_tenant_up, self.settings, revision=revision),
            verb=f"Migrating {revision} up for",
            finalize=self._dump_after_migration(),
        )

    def migrate_down(self, version: str | None = None) -> BatchReport:
        """Run revision VERSION down for every tenant."""
        revision = self._require_version("migrate:down", version)
        return self.operator.run(
            "migrate:down",
            self.tenants(),
            partial(operations.migrate_tenant_down, self.settings, revision=revision),
            verb=f"Migrating {revision} down for",
            finalize=self._dump_after_migration(),
        )

    def migrate_redo(
        self,
        step: int | None = None,
        version: str | None = None,
    ) -> list[BatchReport]:
        """Redo migrations: down+up of VERSION if given, else rollback+migrate.

        Each half is a full batch with its own schema dump.
        """
        version = version or self.inputs.version
        if version:
            self._require_version("migrate:redo", version)
            logger.info("Redoing revision", version=version)
            return [self.migrate_down(version), self.migrate_up(version)]

        steps = self._require_step(step)
        logger.info("Redoing migrations", steps=steps)
        return [self.rollback(steps), self.migrate()]

    def dump_schema(self) -> Path:
        """Write the default database structure to SCHEMA_PATH."""
        self.reporter.announce(
            f"Dumping schema to {self.settings.schema_dump.dump_path}"
        )
        return dump_schema(self.settings, self.manager)
