"""Typer application and CLI entry point for kubeconnect.

This module builds the top-level Typer application and registers the
built-in commands (``contexts``, ``resolve``, ``credential``, ``get`` and
the ``config`` group). The root callback turns global flags into an
:class:`~kubeconnect.output.OutputManager`, configures library logging and
stores the connection flags in ``ctx.obj`` for :func:`load_options`.
User settings are read only by commands that need them, so
``config reset`` still works when the settings file is corrupt.

:func:`main` is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import functools
import logging
import signal
import sys
from typing import Any, Callable, Optional

import typer

from kubeconnect import __version__
from kubeconnect.exceptions import KubeConnectError
from kubeconnect.exit_codes import EXIT_GENERIC_FAILURE
from kubeconnect.models import GlobalConfig
from kubeconnect.options import ConnectionOptions

app = typer.Typer(
    name="kubeconnect",
    help="Resolve kubeconfig contexts into authenticated Kubernetes API connections.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_log_handler: Optional[logging.Handler] = None


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"kubeconnect {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send ``kubeconnect.*`` log records to stderr through the output manager."""
    from kubeconnect.output import get_output

    global _log_handler
    package_logger = logging.getLogger("kubeconnect")
    if _log_handler is not None:
        package_logger.removeHandler(_log_handler)
    _log_handler = get_output().logging_handler()
    package_logger.addHandler(_log_handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    kubeconfig: Optional[str] = typer.Option(
        None, "--kubeconfig", help="Path to the kubeconfig file (overrides KUBECONFIG)."
    ),
    context: Optional[str] = typer.Option(
        None, "--context", "-c", help="Context to use instead of the current one."
    ),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", "-n", help="Namespace override."
    ),
    in_cluster: bool = typer.Option(
        False, "--in-cluster", help="Use the pod's service account instead of a kubeconfig."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and logging, and record the connection flags in ``ctx.obj``."""
    from kubeconnect.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["kubeconfig"] = kubeconfig
    ctx.obj["context"] = context
    ctx.obj["namespace"] = namespace
    ctx.obj["in_cluster"] = in_cluster
    ctx.obj["verbose"] = verbose


def global_settings(ctx: typer.Context) -> GlobalConfig:
    """Load the user settings on first use and keep them in ``ctx.obj``.

    Raises:
        ConfigError: If the settings file is unreadable or invalid.
    """
    from kubeconnect.config import load_global_config

    obj = ctx.ensure_object(dict)
    if obj.get("global_config") is None:
        obj["global_config"] = load_global_config()
    return obj["global_config"]


def load_options(ctx: typer.Context) -> ConnectionOptions:
    """Resolve connection options from the flags stored by :func:`main_callback`."""
    from kubeconnect.loader import load_connection_options

    obj = ctx.obj
    settings = global_settings(ctx)
    return load_connection_options(
        kubeconfig=obj.get("kubeconfig"),
        context=obj.get("context"),
        namespace=obj.get("namespace"),
        in_cluster=obj.get("in_cluster", False),
        global_config=settings,
    )


def handle_errors(command: Callable[..., Any]) -> Callable[..., Any]:
    """Report :class:`KubeConnectError` on stderr and exit with its code."""

    @functools.wraps(command)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return command(*args, **kwargs)
        except KubeConnectError as exc:
            from kubeconnect.output import error

            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from exc

    return wrapper


def _register_commands() -> None:
    from kubeconnect.commands.config import config_app
    from kubeconnect.commands.contexts import contexts_command
    from kubeconnect.commands.credential import credential_command
    from kubeconnect.commands.get import get_command
    from kubeconnect.commands.resolve import resolve_command

    app.command("contexts")(handle_errors(contexts_command))
    app.command("resolve")(handle_errors(resolve_command))
    app.command("credential")(handle_errors(credential_command))
    app.command("get")(handle_errors(get_command))
    app.add_typer(config_app, name="config", help="Manage kubeconnect settings.")


_register_commands()


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``kubeconnect`` console script.

    :class:`KubeConnectError` exits with the error's ``exit_code``; any
    other exception is reported and exits with the generic failure code.
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
        from kubeconnect.output import error

        if isinstance(exc, KubeConnectError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logging.getLogger(__name__).debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
