# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Human-readable task output.

Every per-tenant action is announced before it starts and every recognised
per-tenant failure is reported after the fact. Output goes through a single
rich Console guarded by a lock so that lines from concurrent callers never
interleave.
"""

import threading

from rich.console import Console
from rich.markup import escape


class Reporter:
    """Serialized writer for task announcements, notices and warnings.

    Example:
        >>> reporter = Reporter()
        >>> reporter.announce("Migrating acme tenant")
        >>> reporter.notice("Tenant not found: beta")
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._lock = threading.Lock()

    @property
    def console(self) -> Console:
        return self._console

    def _write(self, text: str, style: str | None = None) -> None:
        with self._lock:
            self._console.print(escape(text), style=style)

    def announce(self, text: str) -> None:
        """Write an action line (e.g. ``Migrating acme tenant``)."""
        self._write(text)

    def notice(self, text: str) -> None:
        """Write a recognised, non-fatal per-tenant failure."""
        self._write(text, style="yellow")

    def warning(self, text: str) -> None:
        """Write a warning that does not stop the task."""
        self._write(f"[WARNING] {text}", style="bold yellow")

    def error(self, text: str) -> None:
        self._write(text, style="bold red")
