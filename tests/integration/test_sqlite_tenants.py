# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests running real tasks against SQLite tenants.

Every tenant is a SQLite file under tmp_path and migrations are real Alembic
revisions (0001 creates users, 0002 creates posts).
"""

import io
import shutil
import sys
from pathlib import Path

import pytest
import yaml
from sqlalchemy import inspect, text

from tenantops.core.config.settings import (
    ParallelSettings,
    SchemaSettings,
    SeedSettings,
    Settings,
    TaskInputs,
)
from tenantops.infrastructure.database.migrations.runner import MigrationRunner
from tenantops.infrastructure.database.tenant_manager import get_tenant_manager
from tenantops.tasks.batch import TenantStatus
from tenantops.tasks.service import TenantTasks
from tenantops.utils.console import Reporter

pytestmark = pytest.mark.integration

SEED_MODULE = '''
from sqlalchemy import text


def seed(session):
    session.execute(text("INSERT INTO users (name) VALUES ('admin')"))
'''


def tasks_for(settings: Settings, reporter: Reporter, **inputs) -> TenantTasks:
    return TenantTasks(settings, TaskInputs(**inputs), reporter=reporter)


def tables(settings: Settings, tenant: str) -> set[str]:
    with get_tenant_manager(settings).switch(tenant) as conn:
        return set(inspect(conn).get_table_names())


def heads(settings: Settings, tenant: str) -> tuple[str, ...]:
    with get_tenant_manager(settings).switch(tenant) as conn:
        return MigrationRunner(settings).current(conn)


class TestCreateAndDrop:
    """Tests for create and drop."""

    def test_create_migrates_new_tenants(self, sqlite_settings: Settings, reporter: Reporter) -> None:
        """Test that created tenants are migrated to head."""
        report = tasks_for(sqlite_settings, reporter, db="acme,beta").create()

        assert report.succeeded == ["acme", "beta"]
        for tenant in ("acme", "beta"):
            assert {"users", "posts"} <= tables(sqlite_settings, tenant)
            assert heads(sqlite_settings, tenant) == ("0002",)

    def test_create_existing_is_reported(
        self, sqlite_settings: Settings, reporter: Reporter, output: io.StringIO
    ) -> None:
        """Test that creating a tenant twice reports and continues."""
        tasks = tasks_for(sqlite_settings, reporter, db="acme")
        tasks.create()

        report = tasks_for(sqlite_settings, reporter, db="acme,beta").create()

        assert report.succeeded == ["beta"]
        assert report.failed[0].status is TenantStatus.ALREADY_EXISTS
        assert "Tenant already exists: acme" in output.getvalue()

    def test_drop(self, sqlite_settings: Settings, reporter: Reporter, output: io.StringIO) -> None:
        """Test dropping existing and missing tenants."""
        tasks_for(sqlite_settings, reporter, db="acme").create()

        report = tasks_for(sqlite_settings, reporter, db="acme,ghost").drop()

        assert report.succeeded == ["acme"]
        assert not (sqlite_settings.tenant.sqlite_directory / "acme.sqlite3").exists()
        assert "Tenant not found: ghost" in output.getvalue()

    def test_create_then_seed(
        self,
        sqlite_settings: Settings,
        reporter: Reporter,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test seeding right after creation."""
        (tmp_path / "tenantops_it_seeds.py").write_text(SEED_MODULE)
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.delitem(sys.modules, "tenantops_it_seeds", raising=False)
        settings = sqlite_settings.model_copy(
            update={
                "tenant": sqlite_settings.tenant.model_copy(update={"seed_after_create": True}),
                "seed": SeedSettings(function="tenantops_it_seeds:seed"),
            }
        )

        tasks_for(settings, reporter, db="acme").create()

        with get_tenant_manager(settings).switch("acme") as conn:
            names = conn.execute(text("SELECT name FROM users")).scalars().all()
        assert names == ["admin"]


class TestMigrations:
    """Tests for migrate, rollback, migrate:up, migrate:down and redo."""

    @pytest.fixture
    def unmigrated(self, sqlite_settings: Settings) -> Settings:
        """Provide settings whose tenants acme and beta exist but are empty."""
        settings = sqlite_settings.model_copy(
            update={
                "tenant": sqlite_settings.tenant.model_copy(
                    update={"migrate_on_create": False, "names": ["acme", "beta"]}
                )
            }
        )
        manager = get_tenant_manager(settings)
        manager.create("acme")
        manager.create("beta")
        return settings

    def test_migrate_and_dump(self, unmigrated: Settings, reporter: Reporter) -> None:
        """Test migrating to head and dumping the default database."""
        report = tasks_for(unmigrated, reporter).migrate()

        assert report.finalized
        assert heads(unmigrated, "acme") == ("0002",)
        assert heads(unmigrated, "beta") == ("0002",)
        assert unmigrated.schema_dump.dump_path.is_file()

    def test_migrate_in_parallel(self, unmigrated: Settings, reporter: Reporter) -> None:
        """Test migrating with two worker threads."""
        settings = unmigrated.model_copy(
            update={"parallel": ParallelSettings(concurrency=2)}
        )

        report = tasks_for(settings, reporter).migrate()

        assert sorted(report.succeeded) == ["acme", "beta"]
        assert heads(settings, "acme") == heads(settings, "beta") == ("0002",)

    def test_versions_path_with_space(
        self, unmigrated: Settings, reporter: Reporter, tmp_path: Path
    ) -> None:
        """Test that a versions directory whose path contains a space is found."""
        spaced = tmp_path / "my project" / "versions"
        shutil.copytree(unmigrated.migrations.versions_path, spaced)
        settings = unmigrated.model_copy(
            update={
                "migrations": unmigrated.migrations.model_copy(update={"versions_path": spaced})
            }
        )

        report = tasks_for(settings, reporter).migrate()

        assert sorted(report.succeeded) == ["acme", "beta"]
        assert heads(settings, "acme") == ("0002",)

    def test_rollback(self, unmigrated: Settings, reporter: Reporter) -> None:
        """Test reverting the last migration."""
        tasks_for(unmigrated, reporter).migrate()

        tasks_for(unmigrated, reporter, step=1).rollback()

        assert heads(unmigrated, "acme") == ("0001",)
        assert "posts" not in tables(unmigrated, "acme")
        assert "users" in tables(unmigrated, "acme")

    def test_migrate_up_and_down(self, unmigrated: Settings, reporter: Reporter) -> None:
        """Test running one revision up and down."""
        tasks_for(unmigrated, reporter, version="0001").migrate_up()
        assert heads(unmigrated, "acme") == ("0001",)

        # Already applied
        tasks_for(unmigrated, reporter, version="0001").migrate_up()
        assert heads(unmigrated, "acme") == ("0001",)

        tasks_for(unmigrated, reporter, version="0001").migrate_down()
        assert heads(unmigrated, "acme") == ()
        assert "users" not in tables(unmigrated, "acme")

        # Not applied
        tasks_for(unmigrated, reporter, version="0001").migrate_down()
        assert heads(unmigrated, "acme") == ()

    def test_migrate_down_reverts_later_revisions_first(
        self, unmigrated: Settings, reporter: Reporter
    ) -> None:
        """Test that running 0001 down also reverts 0002 applied on top of it."""
        tasks_for(unmigrated, reporter).migrate()

        tasks_for(unmigrated, reporter, version="0001").migrate_down()

        assert heads(unmigrated, "acme") == ()

    def test_redo_with_version(self, unmigrated: Settings, reporter: Reporter) -> None:
        """Test that redo with VERSION ends where it started."""
        tasks_for(unmigrated, reporter, version="0002").migrate_up()

        reports = tasks_for(unmigrated, reporter, version="0002").migrate_redo()

        assert len(reports) == 2
        assert heads(unmigrated, "acme") == ("0002",)
        assert {"users", "posts"} <= tables(unmigrated, "acme")

    def test_redo_with_step(self, unmigrated: Settings, reporter: Reporter) -> None:
        """Test that redo without VERSION rolls back STEP and migrates again."""
        tasks_for(unmigrated, reporter).migrate()

        tasks_for(unmigrated, reporter, step=2).migrate_redo()

        assert heads(unmigrated, "beta") == ("0002",)

    def test_missing_tenant_does_not_stop_migration(
        self, unmigrated: Settings, reporter: Reporter, output: io.StringIO
    ) -> None:
        """Test the acme/beta scenario with beta missing."""
        get_tenant_manager(unmigrated).drop("beta")

        report = tasks_for(unmigrated, reporter).migrate()

        assert report.succeeded == ["acme"]
        assert report.finalized
        assert output.getvalue().splitlines() == [
            "Migrating acme tenant",
            "Migrating beta tenant",
            "Tenant not found: beta",
            f"Dumping schema to {unmigrated.schema_dump.dump_path}",
        ]


class TestSchemaDump:
    """Tests for schema:dump."""

    def test_dump_can_run_twice(self, sqlite_settings: Settings, reporter: Reporter) -> None:
        """Test that the dump task is stateless and re-invocable."""
        with get_tenant_manager(sqlite_settings).engine.begin() as conn:
            conn.execute(text("CREATE TABLE accounts (id INTEGER PRIMARY KEY, code VARCHAR(20))"))
        tasks = tasks_for(sqlite_settings, reporter)

        first = tasks.dump_schema().read_text()
        second = tasks.dump_schema().read_text()

        assert first == second
        assert "CREATE TABLE accounts" in first

    def test_migrate_writes_yaml_dump(
        self, sqlite_settings: Settings, reporter: Reporter, tmp_path: Path
    ) -> None:
        """Test migrating with the yaml schema format against a populated default database."""
        settings = sqlite_settings.model_copy(
            update={"schema_dump": SchemaSettings(format="yaml", path=tmp_path / "schema.yaml")}
        )
        with get_tenant_manager(settings).engine.begin() as conn:
            conn.execute(text("CREATE TABLE accounts (id INTEGER PRIMARY KEY, code VARCHAR(20))"))
            conn.execute(text("CREATE UNIQUE INDEX ix_accounts_code ON accounts (code)"))
        tasks_for(settings, reporter, db="acme").create()

        report = tasks_for(settings, reporter, db="acme").migrate()

        assert report.succeeded == ["acme"]
        assert report.finalized
        document = yaml.safe_load(settings.schema_dump.dump_path.read_text())
        assert [c["name"] for c in document["tables"]["accounts"]["columns"]] == ["id", "code"]
        assert document["tables"]["accounts"]["indexes"] == [
            {"name": "ix_accounts_code", "columns": ["code"], "unique": True}
        ]


@pytest.mark.slow
class TestProcessPool:
    """Tests for PARALLEL_STRATEGY=processes."""

    @pytest.fixture
    def pooled(self, sqlite_settings: Settings) -> Settings:
        """Provide settings running tenants in three worker processes."""
        return sqlite_settings.model_copy(
            update={"parallel": ParallelSettings(concurrency=3, strategy="processes")}
        )

    def test_create_and_migrate(
        self, pooled: Settings, reporter: Reporter, output: io.StringIO
    ) -> None:
        """Test that results and known errors come back from worker processes."""
        created = tasks_for(pooled, reporter, db="acme,beta,gamma,delta").create()

        assert sorted(created.succeeded) == ["acme", "beta", "delta", "gamma"]

        report = tasks_for(pooled, reporter, db="acme,beta,missing,gamma,delta").migrate()

        assert sorted(report.succeeded) == ["acme", "beta", "delta", "gamma"]
        assert [(r.tenant, r.status) for r in report.failed] == [
            ("missing", TenantStatus.NOT_FOUND)
        ]
        assert report.finalized
        assert "Tenant not found: missing" in output.getvalue()
        for tenant in ("acme", "beta", "gamma", "delta"):
            assert heads(pooled, tenant) == ("0002",)
