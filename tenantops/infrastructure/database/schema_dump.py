# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schema dump of the default database.

Reflects the default database and writes its structure to SCHEMA_PATH:

- ``sql``: CREATE TABLE / CREATE INDEX statements compiled for the database
  dialect, followed by INSERTs recording the applied Alembic revisions
- ``yaml``: a mapping of tables to columns and indexes plus the applied
  revisions under ``version``; the version table itself is left out

dump_schema() keeps no state between calls, so a task may run it after every
batch and a composite task (migrate:redo) may run it several times.

Example:
    from tenantops.infrastructure.database.schema_dump import dump_schema

    path = dump_schema(settings, manager)
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from sqlalchemy import MetaData, Table, select
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.exc import CompileError, SQLAlchemyError
from sqlalchemy.schema import CreateIndex, CreateTable

from tenantops.infrastructure.database.connection import DatabaseError, check_connection
from tenantops.utils.logging import get_logger

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings
    from tenantops.infrastructure.database.tenant_manager import TenantDatabaseManager

logger = get_logger(__name__)


def _applied_versions(connection: Connection, table: Table | None) -> list[str]:
    if table is None or "version_num" not in table.c:
        return []
    rows = connection.execute(select(table.c.version_num).order_by(table.c.version_num))
    return [str(row[0]) for row in rows]


def _type_name(column: Any, dialect: Dialect) -> str:
    try:
        return column.type.compile(dialect=dialect)
    except CompileError:
        return repr(column.type)


def _server_default(column: Any) -> str | None:
    if column.server_default is None:
        return None
    arg = getattr(column.server_default, "arg", column.server_default)
    return str(getattr(arg, "text", arg))


def render_sql(
    metadata: MetaData,
    dialect: Dialect,
    versions: list[str],
    version_table: str,
) -> str:
    """Render reflected metadata as DDL.

    Args:
        metadata: Reflected metadata of the default database.
        dialect: Dialect to compile the DDL for.
        versions: Applied Alembic revisions.
        version_table: Name of Alembic's version table.

    Returns:
        The structure file contents.
    """
    parts = [f"-- Structure dump ({dialect.name})", ""]

    for table in metadata.sorted_tables:
        parts.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            parts.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")
        parts.append("")

    if versions:
        quoted = dialect.identifier_preparer.quote(version_table)
        for version in versions:
            parts.append(f"INSERT INTO {quoted} (version_num) VALUES ('{version}');")
        parts.append("")

    return "\n".join(parts)


def render_yaml(
    metadata: MetaData,
    dialect: Dialect,
    versions: list[str],
    version_table: str,
) -> str:
    """Render reflected metadata as a YAML mapping.

    Args:
        metadata: Reflected metadata of the default database.
        dialect: Dialect used to name column types.
        versions: Applied Alembic revisions.
        version_table: Name of Alembic's version table, left out of ``tables``.

    Returns:
        The schema file contents.
    """
    tables: dict[str, Any] = {}

    for table in metadata.sorted_tables:
        if table.name == version_table:
            continue
        tables[str(table.name)] = {
            "columns": [
                {
                    "name": str(column.name),
                    "type": _type_name(column, dialect),
                    "nullable": bool(column.nullable),
                    "default": _server_default(column),
                    "primary_key": bool(column.primary_key),
                }
                for column in table.columns
            ],
            "indexes": [
                {
                    "name": str(index.name) if index.name is not None else None,
                    "columns": [str(column.name) for column in index.columns],
                    "unique": bool(index.unique),
                }
                for index in sorted(table.indexes, key=lambda i: i.name or "")
            ],
        }

    document = {"version": versions, "tables": tables}
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


RENDERERS = {
    "sql": render_sql,
    "yaml": render_yaml,
}


def dump_schema(
    settings: "Settings",
    manager: "TenantDatabaseManager",
) -> Path:
    """Write the default database structure to the configured file.

    Args:
        settings: Application settings containing schema dump configuration.
        manager: Tenant database manager owning the default engine.

    Returns:
        Path of the written file.

    Raises:
        DatabaseError: If the default database is unreachable or reflection fails.
    """
    if not check_connection(manager.engine):
        raise DatabaseError("Default database is unreachable")

    version_table = settings.migrations.version_table
    path = settings.schema_dump.dump_path

    try:
        with manager.engine.connect() as conn:
            metadata = MetaData()
            metadata.reflect(bind=conn)
            versions = _applied_versions(conn, metadata.tables.get(version_table))
            dialect = conn.dialect
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to reflect the default database", e) from e

    render = RENDERERS[settings.schema_dump.format]
    content = render(metadata, dialect, versions, version_table)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")

    logger.info(
        "Dumped schema",
        path=str(path),
        format=settings.schema_dump.format,
        tables=len(metadata.tables),
    )
    return path
