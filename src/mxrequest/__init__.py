"""mxrequest -- build and send requests to the Matrix client-server API.

The package centres on :class:`~mxrequest.request.MatrixRequest`, a small
immutable value describing one API call (method, endpoint, query parameters
and a JSON body). A request is turned into an :class:`httpx.Request` against
a homeserver and sent through :class:`~mxrequest.client.MatrixClient`, which
either decodes the response into a typed value or discards it.

Typical use::

    from mxrequest import MatrixClient, MatrixRequest

    async with MatrixClient("https://matrix.org", token) as client:
        req = MatrixRequest.new_basic("GET", "/account/whoami")
        me = await req.send(client)

The ``mxreq`` console script wraps the same machinery for use from a shell.

Modules:
    request: The request value, body policy, and URL assembly.
    client: The async API client handle and response decoding.
    models: Pydantic models for configuration and Matrix payloads.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    app: Typer application and CLI entry point.
"""

__version__ = "0.1.0"

from mxrequest.client import MatrixClient  # noqa: E402
from mxrequest.request import CLIENT_API_PREFIX, MatrixRequest  # noqa: E402

__all__ = ["CLIENT_API_PREFIX", "MatrixClient", "MatrixRequest", "__version__"]
