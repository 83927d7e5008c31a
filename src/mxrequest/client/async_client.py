"""Asynchronous API client handle for a Matrix homeserver.

:class:`MatrixClient` is what a :class:`~mxrequest.request.MatrixRequest`
is built against and sent through. It owns the homeserver URL, the access
token and an :class:`httpx.AsyncClient`, and exposes one raw send primitive
(:meth:`MatrixClient.send_raw`) with two thin adapters on top:

* :meth:`MatrixClient.send_request` -- decode the body into a type.
* :meth:`MatrixClient.send_discarding_request` -- check the status, drop the body.

``send_raw`` retries connection errors, timeouts and 5xx responses with
exponential backoff, waits out ``M_LIMIT_EXCEEDED`` using the server's
``retry_after_ms`` hint, and maps the remaining error statuses onto the
:class:`~mxrequest.exceptions.MatrixApiError` family.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from mxrequest import __version__
from mxrequest.client.response import decode_response
from mxrequest.exceptions import (
    AuthError,
    MatrixApiError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TransportError,
)
from mxrequest.models import (
    HTTPMethod,
    LoginResponse,
    MatrixErrorBody,
    Profile,
    RequestConfig,
    WhoAmIResponse,
)
from mxrequest.request import MatrixRequest, redact_url

logger = logging.getLogger(__name__)

USER_AGENT = f"mxrequest/{__version__}"


class MatrixClient:
    """Asynchronous client handle for one homeserver and one access token.

    Must be used as an async context manager; the underlying
    :class:`httpx.AsyncClient` only exists inside the ``async with`` block.

    Args:
        homeserver: Base URL of the homeserver, e.g. ``https://matrix.org``.
            A trailing ``/`` is dropped.
        access_token: Token sent as the ``access_token`` query parameter.
            May be empty for unauthenticated endpoints such as ``/login``.
        request_config: Timeout, SSL verification, and retry settings.
        transport: Optional :mod:`httpx` transport, mainly for tests.

    Example::

        async with MatrixClient("https://matrix.org", token) as client:
            me = await client.whoami()
    """

    def __init__(
        self,
        homeserver: str,
        access_token: str = "",
        *,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = homeserver.rstrip("/")
        self.access_token = access_token
        self._config = request_config or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_profile(
        cls,
        profile: Profile,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> MatrixClient:
        """Build a client from a stored profile, resolving its token source.

        Raises:
            ConfigError: If the token source cannot be resolved.
        """
        from mxrequest.config import resolve_credential

        return cls(
            profile.homeserver,
            resolve_credential(profile.access_token_source),
            request_config=profile.request,
            transport=transport,
        )

    @property
    def url(self) -> str:
        """The homeserver base URL, without a trailing ``/``."""
        return self._url

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> MatrixClient:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client. Safe to call twice."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #

    async def send_raw(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the successful response.

        Retries on connection errors, timeouts and 5xx statuses up to
        ``max_retries`` times, doubling the delay each attempt
        (1 s, 2 s, 4 s, ...). A 429 waits for ``retry_after_ms`` when the
        server supplies it.

        Raises:
            TransportError: On network / timeout errors after all retries.
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            RateLimitedError: On 429 after all retries.
            ServerError: On 5xx after all retries.
            MatrixApiError: On any other error status.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        request.headers.setdefault("User-Agent", USER_AGENT)
        max_retries = self._config.max_retries
        target = f"{request.method} {redact_url(request.url)}"
        logger.debug("Request: %s", target)

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.send(request)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.warning(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise TransportError(
                    f"{target} failed after {max_retries + 1} attempts: {exc}"
                ) from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"{target} failed: {exc}") from exc

            logger.debug("Response: HTTP %d for %s", response.status_code, target)
            status = response.status_code
            if attempt < max_retries and (status == 429 or status >= 500):
                delay = _retry_delay(response, attempt)
                logger.warning(
                    "HTTP %d, retrying in %ss (attempt %d/%d)",
                    status, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue

            _map_response_error(response)
            return response

        raise AssertionError("unreachable")  # pragma: no cover

    async def send_request(
        self, request: httpx.Request, response_type: Any = dict
    ) -> Any:
        """Send *request* and decode the response body as *response_type*.

        Raises:
            ResponseDecodeError: If the body does not decode.
            MatrixRequestError: Anything :meth:`send_raw` raises.
        """
        response = await self.send_raw(request)
        return decode_response(response, response_type)

    async def send_discarding_request(self, request: httpx.Request) -> None:
        """Send *request*, checking the status but ignoring the body."""
        await self.send_raw(request)

    # ------------------------------------------------------------------ #
    # Convenience endpoints
    # ------------------------------------------------------------------ #

    async def login(
        self,
        user: str,
        password: str,
        device_id: Optional[str] = None,
        initial_device_display_name: Optional[str] = None,
    ) -> LoginResponse:
        """Log in with a password and adopt the returned access token."""
        body: dict[str, Any] = {
            "type": "m.login.password",
            "identifier": {"type": "m.id.user", "user": user},
            "password": password,
        }
        if device_id is not None:
            body["device_id"] = device_id
        if initial_device_display_name is not None:
            body["initial_device_display_name"] = initial_device_display_name

        req = MatrixRequest(HTTPMethod.POST, "/login", body=body)
        result: LoginResponse = await req.send(self, LoginResponse)
        self.access_token = result.access_token
        return result

    async def logout(self) -> None:
        """Invalidate the current access token and forget it."""
        await MatrixRequest.new_basic(HTTPMethod.POST, "/logout").discarding_send(self)
        self.access_token = ""

    async def whoami(self) -> WhoAmIResponse:
        """Return the user (and device) the access token belongs to."""
        req = MatrixRequest.new_basic(HTTPMethod.GET, "/account/whoami")
        return await req.send(self, WhoAmIResponse)

    async def sync(
        self,
        since: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        filter: Optional[str] = None,
    ) -> dict[str, Any]:
        """Call ``/sync`` and return the raw response object."""
        params: dict[str, str] = {}
        if since is not None:
            params["since"] = since
        if timeout_ms is not None:
            params["timeout"] = str(timeout_ms)
        if filter is not None:
            params["filter"] = filter
        req = MatrixRequest(HTTPMethod.GET, "/sync", params=params)
        return await req.send(self)


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _error_body(response: httpx.Response) -> MatrixErrorBody:
    """Parse a Matrix error object, falling back to the raw text as ``error``."""
    try:
        return MatrixErrorBody.model_validate_json(response.content)
    except ValidationError:
        text = response.text[:200] if response.content else None
        return MatrixErrorBody(error=text or None)


def _retry_delay(response: httpx.Response, attempt: int) -> float:
    """Seconds to wait before retrying *response*, honouring ``retry_after_ms``."""
    if response.status_code == 429:
        hint = _error_body(response).retry_after_ms
        if hint is not None and hint >= 0:
            return hint / 1000
    return float(2 ** attempt)


def _map_response_error(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes."""
    status = response.status_code
    if status < 400:
        return

    body = _error_body(response)
    if status in (401, 403):
        raise AuthError(status, body.errcode, body.error)
    if status == 404:
        raise NotFoundError(status, body.errcode, body.error)
    if status == 429:
        raise RateLimitedError(status, body.errcode, body.error, body.retry_after_ms)
    if status >= 500:
        raise ServerError(status, body.errcode, body.error)
    raise MatrixApiError(status, body.errcode, body.error)
