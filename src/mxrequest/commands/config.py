"""Config commands -- view and modify global configuration.

Provides the ``mxreq config`` sub-command group for reading, updating, and
resetting the user's global configuration file
(:class:`~mxrequest.models.GlobalConfig`).
"""

from __future__ import annotations

import typer

from mxrequest.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the config directory and current configuration.

    Example::

        mxreq config show
        mxreq --json config show
    """
    from mxrequest.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the existing
    field's type (bool or str) and validated before saving.

    Example::

        mxreq config set default_profile home
        mxreq config set output.format json
    """
    from mxrequest.config import load_global_config, save_global_config
    from mxrequest.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced: object = value
    if isinstance(target[final_key], bool):
        coerced = value.lower() in ("true", "1", "yes")
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults. Profiles are left untouched."""
    from mxrequest.config import save_global_config
    from mxrequest.models import GlobalConfig

    if not yes and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
