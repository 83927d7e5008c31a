"""Request commands -- ``mxreq call``, ``whoami``, ``sync`` and ``login``.

Each command resolves the active profile (see
:func:`~mxrequest.config.resolve_config`), opens a
:class:`~mxrequest.client.MatrixClient` for it and runs one coroutine on a
fresh event loop. Library errors are printed and turned into the matching
exit code.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable
from typing import Any, Callable, Optional, TypeVar

import typer

from mxrequest.client import MatrixClient
from mxrequest.client.response import format_api_response
from mxrequest.exceptions import ConfigError, InvalidUsageError, MatrixRequestError
from mxrequest.models import Profile
from mxrequest.output import debug, error, format_response, info, success
from mxrequest.request import MatrixRequest

T = TypeVar("T")


def _resolve_profile(ctx: typer.Context) -> Profile:
    """Return the active profile, or an ad-hoc one built from ``--homeserver``."""
    from mxrequest.config import resolve_config

    obj = ctx.obj or {}
    _, profile = resolve_config(
        cli_profile=obj.get("profile"),
        cli_homeserver=obj.get("homeserver"),
    )
    if profile is not None:
        return profile
    if obj.get("homeserver"):
        return Profile(name="adhoc", homeserver=obj["homeserver"])
    raise ConfigError(
        "No profile configured. Run 'mxreq profile add' or pass --homeserver."
    )


def _run(
    ctx: typer.Context,
    action: Callable[[MatrixClient], Awaitable[T]],
    authenticated: bool = True,
) -> tuple[Profile, T]:
    """Open a client for the active profile, run *action*, map errors to exits."""
    try:
        profile = _resolve_profile(ctx)
        debug(f"Using profile '{profile.name}' at {profile.homeserver}")
        if authenticated:
            client = MatrixClient.from_profile(profile)
        else:
            client = MatrixClient(profile.homeserver, request_config=profile.request)

        async def _go() -> T:
            async with client:
                return await action(client)

        return profile, asyncio.run(_go())
    except MatrixRequestError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _parse_params(values: Optional[list[str]]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected KEY=VALUE for --param, got: {item!r}")
        params[key] = value
    return params


def _parse_body(body: Optional[str]) -> Any:
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"--body is not valid JSON: {exc}") from exc


def call_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method (GET, POST, PUT, DELETE)."),
    endpoint: str = typer.Argument(
        help="Endpoint without the /_matrix/client/r0 prefix, e.g. /joined_rooms."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as KEY=VALUE (repeatable)."
    ),
    body: Optional[str] = typer.Option(
        None, "--body", "-b", help="JSON request body."
    ),
    discard: bool = typer.Option(
        False, "--discard", help="Check the status but do not print the body."
    ),
    raw: bool = typer.Option(
        False, "--raw", help="Print the status line and the undecoded body."
    ),
) -> None:
    """Send an arbitrary request to the homeserver.

    Example::

        mxreq call GET /sync -P since=s123 -P timeout=0
        mxreq call PUT /rooms/!abc:example.org/send/m.room.message/txn1 \\
            --body '{"msgtype": "m.text", "body": "hello"}'
    """
    try:
        request = MatrixRequest(
            method, endpoint, params=_parse_params(param), body=_parse_body(body)
        )
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if discard:
        _run(ctx, request.discarding_send)
        success(f"{request.method} {endpoint} OK")
        return

    if raw:
        _, response = _run(
            ctx, lambda client: client.send_raw(request.make_request(client))
        )
        format_api_response(response)
        return

    _, data = _run(ctx, lambda client: request.send(client, Any))
    format_response(data)


def whoami_command(ctx: typer.Context) -> None:
    """Show the user and device the access token belongs to."""
    _, me = _run(ctx, lambda client: client.whoami())
    format_response(me.model_dump(mode="json", exclude_none=True))


def sync_command(
    ctx: typer.Context,
    since: Optional[str] = typer.Option(None, "--since", help="Sync token to resume from."),
    timeout_ms: int = typer.Option(0, "--timeout", help="Long-poll timeout in milliseconds."),
    filter_: Optional[str] = typer.Option(None, "--filter", help="Filter ID or inline JSON filter."),
) -> None:
    """Run a single ``/sync`` and print the response."""
    _, data = _run(
        ctx,
        lambda client: client.sync(since=since, timeout_ms=timeout_ms, filter=filter_),
    )
    format_response(data)


def login_command(
    ctx: typer.Context,
    user: str = typer.Argument(help="User localpart or full user ID."),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Account password."
    ),
    device_id: Optional[str] = typer.Option(None, "--device-id", help="Reuse a device ID."),
    save: bool = typer.Option(
        False, "--save", help="Store the new token in the active profile."
    ),
) -> None:
    """Log in with a password and print (or save) the new access token."""
    from mxrequest.config import save_profile

    profile, result = _run(
        ctx,
        lambda client: client.login(user, password, device_id=device_id),
        authenticated=False,
    )

    data = result.model_dump(mode="json", exclude_none=True)
    if save:
        profile.user_id = result.user_id
        profile.access_token_source = f"token:{result.access_token}"
        save_profile(profile)
        data.pop("access_token", None)
        info(f"Token saved in plain text to profile '{profile.name}'.")
    success(f"Logged in as {result.user_id}")
    format_response(data)
