"""Console output for rcsetup, split strictly between stdout and stderr.

The rules follow `clig.dev <https://clig.dev/>`_:

* **stdout** carries only the result of a command: the provisioning summary
  table, or the report as JSON under ``--json``. Scripts can pipe it.
* **stderr** carries everything else: plan lines, created/already-existed
  notices, retry attempts, warnings, errors and next-step hints.
* Rich styling is used when stdout is a terminal; piped output is plain.
* ``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` all turn styling off.

:func:`~rcsetup.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`. Library code never
holds a manager; it calls the module-level helpers (:func:`info`,
:func:`warning`, :func:`debug`, ...), which look the global one up.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.rule import Rule
from rich.table import Table


class OutputFormat(str, Enum):
    """How stdout data is rendered.

    ``AUTO`` picks ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` otherwise. ``JSON`` is selected with ``--json``.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes data to stdout and diagnostics to stderr.

    Args:
        format: Requested stdout format; ``AUTO`` is resolved here, once.
        no_color: Force unstyled output even on a terminal.
        quiet: Drop info, success, section and suggestion lines.
        verbose: Show debug lines (HTTP calls, lookups, retry detail).
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- stdout ---------------------------------------------------------- #

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_json(self, data: Any) -> None:
        """Write *data* to stdout as indented JSON, regardless of format.

        Values JSON cannot encode natively (paths, datetimes) are written
        with ``str()``.
        """
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout as a Rich table, TSV, or a JSON array of objects.

        *title* is only shown in Rich mode.
        """
        if self._format == OutputFormat.JSON:
            self.print_json([dict(zip(headers, row)) for row in rows])
            return

        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # -- stderr ---------------------------------------------------------- #

    def _diag(self, plain: str, styled: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(styled)

    def section(self, title: str) -> None:
        """Heading between provisioning stages (quiet-suppressed)."""
        if self._quiet:
            return
        if self._no_color:
            print(f"\n== {title} ==", file=sys.stderr, flush=True)
        else:
            self._stderr.print(Rule(f"[bold]{title}[/bold]", align="left"))

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diag(message, message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diag(message, f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diag(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diag(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def suggest(self, message: str) -> None:
        """Next-step hint, prefixed with an arrow (quiet-suppressed)."""
        if not self._quiet:
            self._diag(f"→ {message}", f"[dim]→ {message}[/dim]")

    def debug(self, message: str) -> None:
        """Only shown with ``--verbose``; prefixed with ``[debug]``."""
        if self._verbose:
            self._diag(f"[debug] {message}", f"[dim]\\[debug] {message}[/dim]")


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# -- global instance ----------------------------------------------------- #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating an ``AUTO`` one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests use this between runs)."""
    global _output
    _output = None


# -- helpers delegating to the global instance --------------------------- #


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_json(data: Any) -> None:
    get_output().print_json(data)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def section(title: str) -> None:
    get_output().section(title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
