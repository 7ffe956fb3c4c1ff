# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for tenantops.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings(); tasks receive it
explicitly instead of reading global state.

Per-invocation task inputs (DB, STEP, VERSION, IGNORE_EMPTY_TENANTS) are kept
apart in TaskInputs because they change from one command to the next.

Example:
    >>> from tenantops.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.tenant.strategy)
    'schema'
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal, Self

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_FALSY = {"", "0", "false", "no", "off"}


def _split_comma_list(value: Any) -> Any:
    """Split a comma-separated string into trimmed, non-empty items."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class DatabaseSettings(BaseSettings):
    """Default (non-tenant) database configuration.

    The default database is where the tenant list query runs and whose
    structure is written by the schema dump. For the ``schema`` strategy it is
    also the database that holds every tenant schema; for ``database`` it is
    the maintenance connection used to issue CREATE/DROP DATABASE.

    Attributes:
        dsn: Full SQLAlchemy URL. Overrides the individual components.
        driver: SQLAlchemy dialect+driver used when building the URL.
        user: Database username.
        password: Database password.
        host: Database host address.
        port: Database port number.
        name: Database name.
        pool_size: Connection pool size per engine.
        max_overflow: Maximum overflow connections per engine.
        echo: Echo SQL statements to the log.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    dsn: str | None = Field(default=None, validation_alias="DATABASE_URL")
    driver: str = "postgresql+psycopg2"
    user: str = "tenantops"
    password: SecretStr = SecretStr("tenantops")
    host: str = "localhost"
    port: int = 5432
    name: str = "tenantops"
    pool_size: int = 5
    max_overflow: int = 10
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the database URL, preferring an explicit DSN."""
        if self.dsn:
            return self.dsn
        pwd = self.password.get_secret_value()
        return f"{self.driver}://{self.user}:{pwd}@{self.host}:{self.port}/{self.name}"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured URL points at SQLite."""
        return self.url.startswith("sqlite")


class TenantSettings(BaseSettings):
    """Tenant isolation and tenant list configuration.

    Attributes:
        strategy: How tenants are isolated: PostgreSQL schemas, PostgreSQL
            databases, or one SQLite file per tenant.
        names: Configured tenant list (comma-separated in the environment).
        names_file: YAML file with a ``tenants:`` list, used when ``names``
            is empty.
        names_query: SQL query against the default database whose first
            column yields tenant identifiers, used when neither ``names``
            nor ``names_file`` is set.
        default_tenant: Tenant that is never part of a batch (the shared
            default schema or database).
        persistent_schemas: Schemas kept on the search path after the
            tenant schema (``schema`` strategy only).
        sqlite_directory: Directory holding tenant SQLite files.
        migrate_on_create: Migrate new tenants to head right after creation.
        seed_after_create: Seed new tenants right after creation.
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    strategy: Literal["schema", "database", "sqlite"] = "schema"
    names: Annotated[list[str], NoDecode] = Field(default_factory=list)
    names_file: Path | None = None
    names_query: str | None = None
    default_tenant: str = "public"
    persistent_schemas: Annotated[list[str], NoDecode] = Field(default_factory=list)
    sqlite_directory: Path = Path("db/tenants")
    migrate_on_create: bool = True
    seed_after_create: bool = False

    @field_validator("names", "persistent_schemas", mode="before")
    @classmethod
    def split_names(cls, value: Any) -> Any:
        """Accept comma-separated strings for list fields."""
        return _split_comma_list(value)


class MigrationSettings(BaseSettings):
    """Alembic migration configuration.

    Attributes:
        versions_path: Directory containing the application's revision scripts.
        version_table: Name of Alembic's version table in each tenant.
    """

    model_config = SettingsConfigDict(
        env_prefix="MIGRATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    versions_path: Path = Path("migrations/versions")
    version_table: str = "alembic_version"


class SchemaSettings(BaseSettings):
    """Schema dump configuration.

    Attributes:
        format: ``sql`` writes DDL, ``yaml`` writes a table/column mapping.
        path: Output file. Defaults to db/structure.sql or db/schema.yaml.
        dump_after_migration: Dump after every migration batch.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    format: Literal["sql", "yaml"] = "sql"
    path: Path | None = None
    dump_after_migration: bool = True

    @property
    def dump_path(self) -> Path:
        """Resolve the output file for the configured format."""
        if self.path is not None:
            return self.path
        if self.format == "yaml":
            return Path("db/schema.yaml")
        return Path("db/structure.sql")


class ParallelSettings(BaseSettings):
    """Batch parallelism configuration.

    Attributes:
        concurrency: Maximum number of tenants processed at once.
            1 runs every tenant inline in the calling thread.
        strategy: Worker pool type. Alembic keeps process-global state, so
            only ``processes`` runs migrations truly in parallel.
    """

    model_config = SettingsConfigDict(
        env_prefix="PARALLEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    concurrency: int = Field(default=1, ge=1)
    strategy: Literal["threads", "processes"] = "threads"


class SeedSettings(BaseSettings):
    """Seed configuration.

    Attributes:
        function: Import path ``package.module:function`` of a callable that
            receives a SQLAlchemy Session bound to the tenant.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    function: str | None = None


class TaskInputs(BaseSettings):
    """Per-invocation task inputs read from the environment.

    Attributes:
        db: Comma-separated tenant override (``DB``).
        step: Number of revisions for rollback and redo (``STEP``).
        version: Revision for migrate:up, migrate:down and redo (``VERSION``).
        ignore_empty_tenants: Suppress the empty tenant list warning
            (``IGNORE_EMPTY_TENANTS``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    db: str | None = Field(default=None, validation_alias="DB")
    step: int = Field(default=1, ge=1, validation_alias="STEP")
    version: str | None = Field(default=None, validation_alias="VERSION")
    ignore_empty_tenants: bool = Field(
        default=False,
        validation_alias="IGNORE_EMPTY_TENANTS",
    )

    @field_validator("ignore_empty_tenants", mode="before")
    @classmethod
    def parse_flag(cls, value: Any) -> Any:
        """Treat any value other than an explicit false-like one as set."""
        if isinstance(value, str):
            return value.strip().lower() not in _FALSY
        return value

    @field_validator("version", mode="before")
    @classmethod
    def blank_version_is_unset(cls, value: Any) -> Any:
        """Normalize blank revisions to None."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Default database settings.
        tenant: Tenant isolation and list settings.
        migrations: Alembic settings.
        schema_dump: Schema dump settings.
        parallel: Batch parallelism settings.
        seed: Seed settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    tenant: TenantSettings = Field(default_factory=TenantSettings)
    migrations: MigrationSettings = Field(default_factory=MigrationSettings)
    schema_dump: SchemaSettings = Field(default_factory=SchemaSettings)
    parallel: ParallelSettings = Field(default_factory=ParallelSettings)
    seed: SeedSettings = Field(default_factory=SeedSettings)

    @model_validator(mode="after")
    def validate_strategy_matches_database(self) -> Self:
        """Validate that the tenant strategy fits the database dialect.

        Raises:
            ValueError: If the strategy cannot work with the configured URL.
        """
        if self.tenant.strategy == "sqlite" and not self.database.is_sqlite:
            raise ValueError(
                "TENANT_STRATEGY=sqlite requires a sqlite DATABASE_URL."
            )
        if self.tenant.strategy in ("schema", "database") and self.database.is_sqlite:
            raise ValueError(
                f"TENANT_STRATEGY={self.tenant.strategy} requires a PostgreSQL database."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
