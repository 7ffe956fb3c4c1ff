# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch execution of one operation across many tenants.

BatchTenantOperator runs a per-tenant operation for every tenant of a batch
on a bounded worker pool:

- At most ``concurrency`` tenants run at once; a tenant is dispatched only
  when a worker slot frees up
- TenantNotFoundError and TenantExistsError are turned into TenantResult
  values inside the worker, reported, and the batch goes on
- Any other exception stops dispatching, waits for the tenants already
  running, then propagates
- An optional finalization step runs once after a batch that did not abort

Announcements and notices are written from the coordinating thread only.

Example:
    operator = BatchTenantOperator(BatchConfig(concurrency=4))
    report = operator.run(
        "migrate",
        ["acme", "beta"],
        partial(migrate_tenant, settings),
        verb="Migrating",
        finalize=lambda: dump_schema(settings, manager),
    )
"""

from collections import deque
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Literal, Sequence

from tenantops.infrastructure.database.tenant_manager import (
    TenantExistsError,
    TenantNotFoundError,
)
from tenantops.utils.console import Reporter
from tenantops.utils.logging import get_logger

if TYPE_CHECKING:
    from tenantops.core.config.settings import Settings, TaskInputs

logger = get_logger(__name__)

TenantOperation = Callable[[str], object]


class TenantStatus(str, Enum):
    """Outcome of one tenant operation that did not abort the batch."""

    SUCCEEDED = "succeeded"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class TenantResult:
    """Result of running an operation for one tenant.

    Attributes:
        tenant: Tenant identifier.
        status: What happened.
        message: Error message for recognised failures.
    """

    tenant: str
    status: TenantStatus
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is TenantStatus.SUCCEEDED


@dataclass
class BatchReport:
    """Outcome of one batch.

    Attributes:
        task: Task name (``migrate``, ``create``...).
        results: One result per attempted tenant, in completion order.
        finalized: Whether the finalization step ran.
    """

    task: str
    results: list[TenantResult] = field(default_factory=list)
    finalized: bool = False

    @property
    def succeeded(self) -> list[str]:
        return [result.tenant for result in self.results if result.ok]

    @property
    def failed(self) -> list[TenantResult]:
        return [result for result in self.results if not result.ok]


@dataclass(frozen=True)
class BatchConfig:
    """Configuration of a BatchTenantOperator.

    Attributes:
        concurrency: Maximum tenants in flight; 1 runs inline.
        strategy: Worker pool type.
        ignore_empty_tenants: Suppress the empty tenant list warning.
    """

    concurrency: int = 1
    strategy: Literal["threads", "processes"] = "threads"
    ignore_empty_tenants: bool = False

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")

    @classmethod
    def from_settings(cls, settings: "Settings", inputs: "TaskInputs") -> "BatchConfig":
        """Build the config from application settings and task inputs."""
        return cls(
            concurrency=settings.parallel.concurrency,
            strategy=settings.parallel.strategy,
            ignore_empty_tenants=inputs.ignore_empty_tenants,
        )


def attempt(op: TenantOperation, tenant: str) -> TenantResult:
    """Run ``op`` for one tenant, converting recognised failures to results.

    Module-level so that it can be sent to a process pool.

    Args:
        op: Per-tenant operation.
        tenant: Tenant identifier.

    Returns:
        The tenant's result.

    Raises:
        Exception: Anything other than TenantNotFoundError or
            TenantExistsError propagates unchanged.
    """
    try:
        op(tenant)
    except TenantNotFoundError as e:
        return TenantResult(tenant, TenantStatus.NOT_FOUND, str(e))
    except TenantExistsError as e:
        return TenantResult(tenant, TenantStatus.ALREADY_EXISTS, str(e))
    return TenantResult(tenant, TenantStatus.SUCCEEDED)


def _make_executor(config: BatchConfig) -> Executor:
    if config.strategy == "processes":
        return ProcessPoolExecutor(max_workers=config.concurrency)
    return ThreadPoolExecutor(
        max_workers=config.concurrency,
        thread_name_prefix="tenantops",
    )


class BatchTenantOperator:
    """Runs a per-tenant operation across a tenant list.

    Attributes:
        config: Batch configuration.
        reporter: Console reporter for announcements and notices.
    """

    def __init__(
        self,
        config: BatchConfig,
        reporter: Reporter | None = None,
        executor_factory: Callable[[BatchConfig], Executor] = _make_executor,
    ) -> None:
        """Initialize the operator.

        Args:
            config: Batch configuration.
            reporter: Console reporter. A default one is created if omitted.
            executor_factory: Builds the worker pool for a batch.
        """
        self.config = config
        self.reporter = reporter or Reporter()
        self._executor_factory = executor_factory

    def warn_if_empty(self, task: str, tenants: Sequence[str]) -> None:
        """Warn about an empty tenant list unless suppressed."""
        if tenants or self.config.ignore_empty_tenants:
            return
        logger.warning("Empty tenant list", task=task)
        self.reporter.warning(
            f"The list of tenants to {task} is empty. Check DB, TENANT_NAMES, "
            "TENANT_NAMES_FILE or TENANT_NAMES_QUERY; set IGNORE_EMPTY_TENANTS=1 "
            "if this is intended."
        )

    def run(
        self,
        task: str,
        tenants: Sequence[str],
        op: TenantOperation,
        *,
        verb: str,
        finalize: Callable[[], object] | None = None,
    ) -> BatchReport:
        """Run ``op`` once for every tenant.

        Args:
            task: Task name used in warnings and logs.
            tenants: Tenants to process.
            op: Per-tenant operation.
            verb: Present participle for announcements (``Migrating``).
            finalize: Step to run once after a batch that did not abort.

        Returns:
            Report with one result per tenant.

        Raises:
            Exception: The first unrecognised failure of any tenant, after
                tenants already running have finished.
        """
        tenants = list(tenants)
        report = BatchReport(task=task)

        self.warn_if_empty(task, tenants)
        logger.info(
            "Starting batch",
            task=task,
            tenants=len(tenants),
            concurrency=self.config.concurrency,
            strategy=self.config.strategy,
        )

        if self.config.concurrency == 1 or len(tenants) <= 1:
            self._run_inline(report, tenants, op, verb)
        else:
            self._run_pool(report, tenants, op, verb)

        if finalize is not None:
            finalize()
            report.finalized = True

        logger.info(
            "Finished batch",
            task=task,
            succeeded=len(report.succeeded),
            failed=len(report.failed),
        )
        return report

    def _record(self, report: BatchReport, result: TenantResult) -> None:
        report.results.append(result)
        if result.ok:
            logger.debug("Tenant done", task=report.task, tenant=result.tenant)
        else:
            logger.warning(
                "Tenant skipped",
                task=report.task,
                tenant=result.tenant,
                status=result.status.value,
            )
            self.reporter.notice(result.message or f"{result.tenant}: {result.status.value}")

    def _abort(self, report: BatchReport, tenant: str, error: Exception, not_started: list[str]) -> None:
        logger.error(
            "Batch aborted",
            task=report.task,
            tenant=tenant,
            error=repr(error),
            not_started=not_started,
        )
        self.reporter.error(f"{report.task} failed for {tenant}: {error}")

    def _run_inline(
        self,
        report: BatchReport,
        tenants: list[str],
        op: TenantOperation,
        verb: str,
    ) -> None:
        for index, tenant in enumerate(tenants):
            self.reporter.announce(f"{verb} {tenant} tenant")
            try:
                result = attempt(op, tenant)
            except Exception as e:
                self._abort(report, tenant, e, tenants[index + 1:])
                raise
            self._record(report, result)

    def _run_pool(
        self,
        report: BatchReport,
        tenants: list[str],
        op: TenantOperation,
        verb: str,
    ) -> None:
        pending = deque(tenants)
        in_flight: dict[Future[TenantResult], str] = {}
        failure: Exception | None = None
        failed_tenant: str | None = None

        with self._executor_factory(self.config) as executor:
            while in_flight or (pending and failure is None):
                while pending and failure is None and len(in_flight) < self.config.concurrency:
                    tenant = pending.popleft()
                    self.reporter.announce(f"{verb} {tenant} tenant")
                    in_flight[executor.submit(attempt, op, tenant)] = tenant

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    tenant = in_flight.pop(future)
                    try:
                        result = future.result()
                    except Exception as e:
                        if failure is None:
                            failure, failed_tenant = e, tenant
                        else:
                            logger.error(
                                "Tenant failed after batch abort",
                                task=report.task,
                                tenant=tenant,
                                error=repr(e),
                            )
                        continue
                    self._record(report, result)

        if failure is not None:
            self._abort(report, failed_tenant or "", failure, list(pending))
            raise failure
