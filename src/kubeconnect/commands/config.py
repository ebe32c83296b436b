"""Config commands -- view and modify kubeconnect's user settings.

Provides the ``kubeconnect config`` group for the
:class:`~kubeconnect.models.GlobalConfig` file: default context and
namespace, credential helper timeout, refresh margin, request and output
defaults. The kubeconfig itself is never modified.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from kubeconnect.exceptions import ConfigError
from kubeconnect.output import get_output

config_app = typer.Typer(no_args_is_help=True)


def _load_or_exit():
    from kubeconnect.config import load_global_config

    output = get_output()
    try:
        return load_global_config()
    except ConfigError as exc:
        output.error(str(exc))
        output.suggest("Restore the defaults: kubeconnect config reset --force")
        raise typer.Exit(code=exc.exit_code) from exc


@config_app.command("show")
def config_show() -> None:
    """Show the current settings.

    Example::

        kubeconnect config show --json
    """
    from kubeconnect.config import get_config_dir

    output = get_output()
    config = _load_or_exit()
    output.info(f"Config directory: {get_config_dir()}")
    output.format_response(config.model_dump(mode="json"))


def _coerce(current: Any, value: str) -> Any:
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if current is None and value.lower() in ("", "none", "null"):
        return None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting key (dot notation, e.g. 'request.timeout')."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a setting, coercing the value to the existing field's type.

    Example::

        kubeconnect config set default_context staging
        kubeconnect config set exec_timeout 10
        kubeconnect config set request.verify_ssl false
    """
    from kubeconnect.config import save_global_config
    from kubeconnect.models import GlobalConfig

    output = get_output()
    data = _load_or_exit().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if not isinstance(target.get(k), dict):
            output.error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        output.error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    try:
        target[final_key] = _coerce(target[final_key], value)
    except ValueError:
        output.error(f"Expected a number for {key}, got: {value}")
        raise typer.Exit(code=2) from None

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        output.error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    output.success(f"Set {key} = {target[final_key]}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset all settings to their defaults.

    Example::

        kubeconnect config reset --force
    """
    from kubeconnect.config import save_global_config
    from kubeconnect.models import GlobalConfig

    output = get_output()
    if not force and not typer.confirm("Reset all settings to defaults?"):
        output.info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    output.success("Settings reset to defaults.")
