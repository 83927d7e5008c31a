"""Typer application and CLI entry point for ``mxreq``.

``mxreq`` is a thin shell front end for :class:`~mxrequest.request.MatrixRequest`:
it resolves a homeserver profile, builds a request from the command line and
prints the decoded response. Sub-commands:

* ``call``, ``whoami``, ``sync``, ``login`` -- see :mod:`mxrequest.commands.api`.
* ``profile`` -- see :mod:`mxrequest.commands.profile`.
* ``config`` -- see :mod:`mxrequest.commands.config`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from mxrequest import __version__
from mxrequest.commands.api import call_command, login_command, sync_command, whoami_command
from mxrequest.commands.config import config_app
from mxrequest.commands.profile import profile_app
from mxrequest.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="mxreq",
    help="Send raw requests to the Matrix client-server API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("call")(call_command)
app.command("whoami")(whoami_command)
app.command("sync")(sync_command)
app.command("login")(login_command)
app.add_typer(profile_app, name="profile", help="Homeserver profile management.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mxreq {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    homeserver: Optional[str] = typer.Option(
        None, "--homeserver", help="Homeserver URL (overrides the profile)."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Output file path."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~mxrequest.output.OutputManager`, routes
    library logging to stderr, and stores shared options in ``ctx.obj``.
    """
    from mxrequest.config import resolve_output_format
    from mxrequest.exceptions import ConfigError
    from mxrequest.output import OutputFormat, OutputManager, set_output

    cli_format: Optional[str] = None
    if json_output:
        cli_format = OutputFormat.JSON.value
    elif plain_output:
        cli_format = OutputFormat.PLAIN.value
    try:
        fmt = OutputFormat(resolve_output_format(cli_format))
    except ConfigError:
        # an unreadable config.json is reported by the command that loads it
        fmt = OutputFormat.AUTO

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
        output_file=output_file,
    )
    set_output(output)
    output.install_log_handler()

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["homeserver"] = homeserver
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback to the data directory and return its path."""
    from mxrequest.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``mxreq`` console script.

    :class:`~mxrequest.exceptions.MatrixRequestError` instances escaping a
    command cause a clean exit with the error's ``exit_code``; anything else
    produces a crash log and a generic failure exit.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from mxrequest.exceptions import MatrixRequestError
        from mxrequest.output import error

        if isinstance(exc, MatrixRequestError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
