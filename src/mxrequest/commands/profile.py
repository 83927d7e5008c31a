"""Profile commands -- manage stored homeserver profiles.

A profile pairs a homeserver URL with an access token source (see
:func:`~mxrequest.config.resolve_credential`). Literal ``token:`` sources
are masked whenever a profile is displayed.
"""

from __future__ import annotations

from typing import Optional

import typer

from mxrequest.output import error, format_response, info, print_table, success


profile_app = typer.Typer(no_args_is_help=True)


def _masked_source(source: str) -> str:
    if source.startswith("token:"):
        return "token:****"
    return source


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    homeserver: str = typer.Option(..., "--homeserver", help="Homeserver base URL."),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Matrix user ID."),
    token_source: str = typer.Option(
        "env:MATRIX_ACCESS_TOKEN",
        "--token-source",
        help="Token source: env:VAR, file:/path, prompt, token:VALUE.",
    ),
    default: bool = typer.Option(False, "--default", help="Make this the default profile."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing profile."),
) -> None:
    """Create a homeserver profile.

    Example::

        mxreq profile add home --homeserver https://matrix.org \\
            --token-source env:MATRIX_TOKEN --default
    """
    from mxrequest.config import (
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from mxrequest.models import Profile

    if profile_exists(name) and not overwrite:
        error(f"Profile '{name}' already exists (use --overwrite to replace it).")
        raise typer.Exit(code=2)

    save_profile(
        Profile(
            name=name,
            homeserver=homeserver.rstrip("/"),
            user_id=user_id,
            access_token_source=token_source,
        )
    )
    if default:
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)
    success(f"Profile '{name}' saved.")


@profile_app.command("list")
def profile_list() -> None:
    """List stored profiles; the default one is marked with ``*``."""
    from mxrequest.config import list_profiles, load_global_config, load_profile

    names = list_profiles()
    if not names:
        info("No profiles. Create one with 'mxreq profile add'.")
        return

    default = load_global_config().default_profile
    rows = []
    for name in names:
        profile = load_profile(name)
        rows.append([
            "*" if name == default else "",
            name,
            profile.homeserver,
            profile.user_id or "",
        ])
    print_table(["default", "name", "homeserver", "user_id"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(name: str = typer.Argument(help="Profile name.")) -> None:
    """Show a profile with its token source masked."""
    from mxrequest.config import load_profile
    from mxrequest.exceptions import ConfigError

    try:
        data = load_profile(name).model_dump(mode="json")
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    data["access_token_source"] = _masked_source(data["access_token_source"])
    format_response(data)


@profile_app.command("remove")
def profile_remove(
    name: str = typer.Argument(help="Profile name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a profile (and unset it as default)."""
    from mxrequest.config import (
        delete_profile,
        load_global_config,
        profile_exists,
        save_global_config,
    )

    if not profile_exists(name):
        error(f"Profile '{name}' not found.")
        raise typer.Exit(code=2)
    if not yes and not typer.confirm(f"Delete profile '{name}'?"):
        info("Cancelled.")
        raise typer.Exit()

    delete_profile(name)
    config = load_global_config()
    if config.default_profile == name:
        config.default_profile = None
        save_global_config(config)
    success(f"Profile '{name}' removed.")
