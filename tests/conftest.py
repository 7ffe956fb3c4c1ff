# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests (SQLite tenants, real Alembic migrations)
"""

import io
import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog
from rich.console import Console

from tenantops.core.config.settings import (
    DatabaseSettings,
    MigrationSettings,
    SchemaSettings,
    Settings,
    TenantSettings,
    clear_settings_cache,
)
from tenantops.infrastructure.database.tenant_manager import reset_tenant_managers
from tenantops.utils.console import Reporter

# Variables that would leak into settings, TaskInputs and tenant resolution
TASK_ENVIRONMENT = (
    "DATABASE_URL",
    "DB",
    "STEP",
    "VERSION",
    "IGNORE_EMPTY_TENANTS",
    "TENANT_NAMES",
    "TENANT_NAMES_FILE",
    "TENANT_NAMES_QUERY",
    "PARALLEL_CONCURRENCY",
    "PARALLEL_STRATEGY",
    "SEED_FUNCTION",
)

USERS_REVISION = '''"""create users"""
import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
    )


def downgrade():
    op.drop_table("users")
'''

POSTS_REVISION = '''"""create posts"""
import sqlalchemy as sa
from alembic import op

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
    )
    op.create_index("ix_posts_title", "posts", ["title"])


def downgrade():
    op.drop_index("ix_posts_title", table_name="posts")
    op.drop_table("posts")
'''


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> None:
    """Keep structured logs out of captured task output."""
    structlog.configure(
        processors=[structlog.processors.KeyValueRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate every test from task variables and cached state."""
    for name in TASK_ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    reset_tenant_managers()
    clear_settings_cache()


@pytest.fixture
def versions_dir(tmp_path: Path) -> Path:
    """Provide a versions directory with two revisions (0001 users, 0002 posts)."""
    path = tmp_path / "migrations" / "versions"
    path.mkdir(parents=True)
    (path / "0001_create_users.py").write_text(USERS_REVISION)
    (path / "0002_create_posts.py").write_text(POSTS_REVISION)
    return path


@pytest.fixture
def sqlite_settings(tmp_path: Path, versions_dir: Path) -> Settings:
    """Provide settings for SQLite tenants under tmp_path."""
    return Settings(
        database=DatabaseSettings(dsn=f"sqlite:///{tmp_path / 'default.sqlite3'}"),
        tenant=TenantSettings(
            strategy="sqlite",
            default_tenant="default",
            sqlite_directory=tmp_path / "tenants",
        ),
        migrations=MigrationSettings(versions_path=versions_dir),
        schema_dump=SchemaSettings(path=tmp_path / "db" / "structure.sql"),
    )


@pytest.fixture
def output() -> io.StringIO:
    """Provide a buffer receiving reporter output."""
    return io.StringIO()


@pytest.fixture
def reporter(output: io.StringIO) -> Reporter:
    """Provide a reporter writing plain text to the output buffer."""
    return Reporter(Console(file=output, width=200, color_system=None, highlight=False))


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (uses real databases)"
    )
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (TEST_DATABASE_URL)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
