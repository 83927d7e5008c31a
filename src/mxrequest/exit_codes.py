"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~mxrequest.exceptions.MatrixRequestError` subclass.
Shell wrappers can inspect the exit code of ``mxreq`` to tell a rejected
token from an unreachable homeserver without parsing stderr.

Example::

    $ mxreq call GET /account/whoami
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- M_UNKNOWN_TOKEN
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, an unserializable body, or a malformed URL."""

EXIT_AUTH_FAILURE = 3
"""The homeserver rejected the access token (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The endpoint or resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The homeserver returned an HTTP 5xx error or kept rate limiting."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
