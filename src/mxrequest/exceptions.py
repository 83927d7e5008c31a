"""Exception hierarchy for mxrequest.

All exceptions inherit from :class:`MatrixRequestError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`mxrequest.exit_codes`.
Library callers catch the specific subclasses; the ``mxreq`` entry point in
:func:`mxrequest.app.main` catches ``MatrixRequestError`` and exits with the
matching code.

Subclass hierarchy::

    MatrixRequestError        (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- SerializationError    (exit 2)
    +-- UrlParseError         (exit 2)
    +-- TransportError        (exit 6)
    +-- ResponseDecodeError   (exit 1)
    +-- ConfigError           (exit 1)
    +-- MatrixApiError        (exit 1)
        +-- AuthError         (exit 3)
        +-- NotFoundError     (exit 4)
        +-- RateLimitedError  (exit 5)
        +-- ServerError       (exit 5)
"""

from __future__ import annotations

from typing import Optional

from mxrequest.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class MatrixRequestError(Exception):
    """Base exception for all mxrequest errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(MatrixRequestError):
    """Raised for invalid CLI arguments (e.g. a ``--param`` without ``=``)."""

    exit_code = EXIT_INVALID_USAGE


class SerializationError(MatrixRequestError):
    """Raised when a request body cannot be encoded as JSON (NaN, sets, ...)."""

    exit_code = EXIT_INVALID_USAGE


class UrlParseError(MatrixRequestError):
    """Raised when the assembled request URL is not an absolute http(s) URL."""

    exit_code = EXIT_INVALID_USAGE


class TransportError(MatrixRequestError):
    """Raised on network-level failures after all retries are exhausted."""

    exit_code = EXIT_CONNECTION_ERROR


class ResponseDecodeError(MatrixRequestError):
    """Raised when a response body does not decode into the requested type."""


class ConfigError(MatrixRequestError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""


class MatrixApiError(MatrixRequestError):
    """Raised when the homeserver answers with an error status.

    Matrix error responses carry a JSON body of the form
    ``{"errcode": "M_FORBIDDEN", "error": "..."}``. Both fields are kept on
    the exception; they are ``None`` when the body was not a Matrix error
    object (e.g. an HTML page from a reverse proxy).

    Args:
        status_code: The HTTP status code.
        errcode: The Matrix ``errcode`` string, if any.
        error: The human-readable ``error`` string, if any.
    """

    def __init__(
        self,
        status_code: int,
        errcode: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.errcode = errcode
        self.error = error
        message = f"HTTP {status_code}"
        if errcode:
            message += f" {errcode}"
        if error:
            message += f": {error}"
        super().__init__(message)


class AuthError(MatrixApiError):
    """Raised on HTTP 401 / 403 (``M_UNKNOWN_TOKEN``, ``M_FORBIDDEN``, ...)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(MatrixApiError):
    """Raised on HTTP 404 (``M_NOT_FOUND``, ``M_UNRECOGNIZED``)."""

    exit_code = EXIT_NOT_FOUND


class RateLimitedError(MatrixApiError):
    """Raised when the homeserver keeps answering ``M_LIMIT_EXCEEDED``.

    ``retry_after_ms`` is the server's last back-off hint, if it sent one.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(
        self,
        status_code: int,
        errcode: Optional[str] = None,
        error: Optional[str] = None,
        retry_after_ms: Optional[int] = None,
    ) -> None:
        super().__init__(status_code, errcode, error)
        self.retry_after_ms = retry_after_ms


class ServerError(MatrixApiError):
    """Raised when the homeserver returns an HTTP 5xx error."""

    exit_code = EXIT_SERVER_ERROR
