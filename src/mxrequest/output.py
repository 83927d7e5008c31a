"""Output formatting for ``mxreq``.

Response bodies go to stdout (or the ``-o`` file) so ``mxreq call GET /sync | jq``
works; status lines, errors and log records go to stderr. On a colour
terminal bodies are pretty-printed with Rich; when piped they are plain.
``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` turn colour off.

:class:`OutputManager` is created once in :func:`~mxrequest.app.main_callback`
and installed with :func:`set_output`; the module-level helpers delegate to it.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Iterator
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How response bodies are rendered. ``AUTO`` picks ``RICH`` or ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Renders response data and diagnostics for one CLI invocation.

    Args:
        format: Rendering for response bodies.
        no_color: Disable colour and Rich markup.
        quiet: Drop ``info`` and ``success`` messages.
        verbose: Show ``debug`` messages and DEBUG log records.
        output_file: Write response bodies here instead of stdout.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        output_file: Optional[str] = None,
    ) -> None:
        self._no_color = no_color or _color_disabled_by_env()
        self._quiet = quiet
        self._verbose = verbose
        self._output_file = output_file

        if format == OutputFormat.AUTO:
            rich_ok = _stdout_is_terminal() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
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

    # ------------------------------------------------------------------ #
    # Response data
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a decoded response body (or raw text) in the active format."""
        if self._output_file:
            with open(self._output_file, "w", encoding="utf-8") as f:
                f.write(_to_json(data) if not isinstance(data, str) else data)
                f.write("\n")
        elif self._format == OutputFormat.RICH and not isinstance(data, str):
            self._stdout.print(Syntax(_to_json(data), "json", word_wrap=True))
        elif self._format == OutputFormat.JSON and not isinstance(data, str):
            self._emit(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self._emit(line)
        else:
            self._emit(str(data))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Show rows as a Rich table, or as records in the JSON / plain formats."""
        if self._format != OutputFormat.RICH or self._output_file:
            self.format_response([dict(zip(headers, row)) for row in rows])
            return
        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    def _emit(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._note(message, "", "")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._note(message, "", "green")

    def error(self, message: str) -> None:
        """Never suppressed, not even by ``--quiet``."""
        self._note(message, "Error: ", "bold red")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._note(message, "[debug] ", "dim")

    def _note(self, message: str, prefix: str, style: str) -> None:
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"{prefix}{message}", style=style or None, markup=False)

    def install_log_handler(self, logger_name: str = "mxrequest") -> None:
        """Send *logger_name* records to stderr through Rich.

        The level is DEBUG with ``--verbose`` and WARNING otherwise. A handler
        installed by an earlier call is replaced.
        """
        logger = logging.getLogger(logger_name)
        for old in [h for h in logger.handlers if isinstance(h, RichHandler)]:
            logger.removeHandler(old)
        logger.addHandler(
            RichHandler(console=self._stderr, show_time=False, show_path=False)
        )
        logger.setLevel(logging.DEBUG if self._verbose else logging.WARNING)


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> Iterator[str]:
    """Tab-separated lines: ``key<TAB>value`` for objects, a header row for records."""
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, ensure_ascii=False, default=str)
            yield f"{key}\t{value}"
    elif isinstance(data, list) and data and all(isinstance(d, dict) for d in data):
        columns = list(data[0])
        yield "\t".join(columns)
        for record in data:
            yield "\t".join(str(record.get(c, "")) for c in columns)
    elif isinstance(data, list):
        yield from (str(item) for item in data)
    else:
        yield str(data)


def _stdout_is_terminal() -> bool:
    return sys.stdout.isatty()


def _color_disabled_by_env() -> bool:
    # NO_COLOR counts even when set to an empty string
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
