# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Command line entry point.

Usage:
    tenantops migrate
    DB=acme,beta tenantops rollback --step 2
    tenantops migrate:up --revision 0002 --tenants acme
    tenantops schema:dump

Options given on the command line take precedence over the DB, STEP,
VERSION and IGNORE_EMPTY_TENANTS environment variables.

Exit codes:
    0: Task finished (recognised per-tenant failures are reported, not fatal)
    1: Task aborted by an unexpected error
    2: Invalid configuration or input; no tenant was touched
"""

import argparse
import sys
from typing import Any, Callable, Sequence

from pydantic import ValidationError

from tenantops import __version__
from tenantops.core.config.settings import (
    ParallelSettings,
    Settings,
    TaskInputs,
    get_settings,
)
from tenantops.core.exceptions import ConfigurationError
from tenantops.infrastructure.database.tenant_manager import reset_tenant_managers
from tenantops.tasks.service import TenantTasks
from tenantops.utils.console import Reporter
from tenantops.utils.logging import bind_context, clear_context, get_logger, setup_logging

logger = get_logger(__name__)

COMMANDS: dict[str, tuple[str, Callable[[TenantTasks], Any]]] = {
    "create": ("Create every tenant", lambda tasks: tasks.create()),
    "drop": ("Drop every tenant", lambda tasks: tasks.drop()),
    "migrate": ("Migrate every tenant to head", lambda tasks: tasks.migrate()),
    "seed": ("Seed every tenant", lambda tasks: tasks.seed()),
    "rollback": ("Revert the last STEP migrations", lambda tasks: tasks.rollback()),
    "migrate:up": ("Run revision VERSION up", lambda tasks: tasks.migrate_up()),
    "migrate:down": ("Run revision VERSION down", lambda tasks: tasks.migrate_down()),
    "migrate:redo": (
        "Redo VERSION, or the last STEP migrations",
        lambda tasks: tasks.migrate_redo(),
    ),
    "schema:dump": ("Dump the default database structure", lambda tasks: tasks.dump_schema()),
    "structure:dump": ("Alias of schema:dump", lambda tasks: tasks.dump_schema()),
    "list": ("Print the resolved tenant list", lambda tasks: tasks.list_tenants()),
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per task."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--tenants",
        help="Comma-separated tenant list, overrides DB and the configured tenants",
    )
    common.add_argument("--step", type=int, help="Number of revisions (STEP)")
    common.add_argument("--revision", help="Alembic revision (VERSION)")
    common.add_argument(
        "--ignore-empty-tenants",
        action="store_true",
        default=None,
        help="Do not warn when no tenant is configured",
    )
    common.add_argument(
        "--concurrency",
        type=int,
        help="Tenants processed at once (PARALLEL_CONCURRENCY)",
    )

    parser = argparse.ArgumentParser(
        prog="tenantops",
        description="Run database tasks across every tenant",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)
    for name, (help_text, _) in COMMANDS.items():
        subparsers.add_parser(name, parents=[common], help=help_text)
    return parser


def _task_inputs(args: argparse.Namespace) -> TaskInputs:
    overrides = {
        "db": args.tenants,
        "step": args.step,
        "version": args.revision,
        "ignore_empty_tenants": args.ignore_empty_tenants,
    }
    return TaskInputs(**{key: value for key, value in overrides.items() if value is not None})


def _apply_concurrency(settings: Settings, concurrency: int | None) -> Settings:
    if concurrency is None:
        return settings
    parallel = ParallelSettings(
        concurrency=concurrency,
        strategy=settings.parallel.strategy,
    )
    return settings.model_copy(update={"parallel": parallel})


def main(argv: Sequence[str] | None = None) -> int:
    """Run one task.

    Args:
        argv: Command line arguments, sys.argv[1:] if omitted.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    reporter = Reporter()

    try:
        settings = _apply_concurrency(get_settings(), args.concurrency)
        inputs = _task_inputs(args)
    except (ConfigurationError, ValidationError) as e:
        reporter.error(f"Invalid configuration: {e}")
        return 2

    setup_logging(settings)
    bind_context(command=args.command)
    _, run = COMMANDS[args.command]

    try:
        run(TenantTasks(settings, inputs, reporter=reporter))
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=e.message)
        reporter.error(e.message)
        return 2
    except Exception as e:
        logger.exception("Task failed", error=str(e))
        return 1
    finally:
        reset_tenant_managers()
        clear_context()

    return 0


if __name__ == "__main__":
    sys.exit(main())
