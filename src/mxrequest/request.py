"""A single request to an endpoint of the Matrix client-server API.

:class:`MatrixRequest` is an immutable value holding the four things that
vary between calls -- the method, the endpoint, the query parameters and
the body. Everything else (homeserver URL, access token, API prefix) comes
from the client handle at build time:

* :meth:`MatrixRequest.serialize_body` -- compact JSON, or ``None`` when the
  body is empty (``{}``) so that endpoints which reject an empty object
  never see one.
* :meth:`MatrixRequest.build_url` -- ``<homeserver>/_matrix/client/r0<endpoint>``
  with ``access_token`` first in the query string and every parameter
  percent-encoded.
* :meth:`MatrixRequest.make_request` -- both of the above as an
  :class:`httpx.Request`.
* :meth:`MatrixRequest.send` / :meth:`MatrixRequest.discarding_send` --
  build, then hand off to :class:`~mxrequest.client.MatrixClient`.

The endpoint itself is inserted verbatim; only parameters are encoded. An
endpoint that is not already valid URL text (a space, non-ASCII, a stray
``%``) raises :class:`~mxrequest.exceptions.UrlParseError` instead of being
escaped.

Example::

    req = MatrixRequest.new_basic("GET", "/sync")
    req = req.with_params(since="s72594_4483_1934", timeout="30000")
    sync = await req.send(client)
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from mxrequest.exceptions import SerializationError, UrlParseError
from mxrequest.models import HTTPMethod

if TYPE_CHECKING:
    from mxrequest.client.async_client import MatrixClient

logger = logging.getLogger(__name__)

CLIENT_API_PREFIX = "/_matrix/client/r0"
"""Fixed version prefix inserted between the homeserver URL and the endpoint."""

_EMPTY_BODIES = ("{}", "null")

# RFC 3986 path characters plus the "?" and "#" delimiters, with %XX escapes.
_ENDPOINT_RE = re.compile(r"(?:[A-Za-z0-9\-._~!$&'()*+,;=:@/?#]|%[0-9A-Fa-f]{2})*")

B = TypeVar("B")


def encode_component(value: str) -> str:
    """Percent-encode *value* for use as a query key or value.

    Only RFC 3986 unreserved characters (``A-Z a-z 0-9 - . _ ~``) pass
    through; ``&``, ``=``, ``+``, ``/`` and everything else is escaped.
    """
    return quote(value, safe="")


def redact_url(url: httpx.URL) -> str:
    """Render *url* with the access token replaced, for logs and messages."""
    if "access_token" not in url.params:
        return str(url)
    return str(url.copy_set_param("access_token", "<redacted>"))


@dataclass(frozen=True)
class MatrixRequest(Generic[B]):
    """An arbitrary request to an endpoint of the Matrix client-server API.

    Attributes:
        method: HTTP verb, stored upper-case.
        endpoint: API endpoint without :data:`CLIENT_API_PREFIX`
            (e.g. ``/sync``). It is not percent-encoded, so room IDs and
            aliases must be escaped by the caller: a literal ``#`` starts the
            URL fragment and swallows the query string, ``access_token``
            included.
        params: Query-string parameters. Keys are unique; ordering is not
            preserved on the wire.
        body: Any JSON-serialisable value or Pydantic model. ``None`` and
            values serialising to ``{}`` are not sent.
    """

    method: str
    endpoint: str
    params: dict[str, str] = field(default_factory=dict)
    body: Optional[B] = None

    def __post_init__(self) -> None:
        method = self.method.value if isinstance(self.method, HTTPMethod) else self.method
        object.__setattr__(self, "method", str(method).upper())
        object.__setattr__(
            self, "params", {str(k): str(v) for k, v in self.params.items()}
        )

    # ------------------------------------------------------------------ #
    # Constructors
    # ------------------------------------------------------------------ #

    @classmethod
    def new_basic(
        cls, method: Union[str, HTTPMethod], endpoint: str
    ) -> MatrixRequest[None]:
        """Make a request with no parameters and no body."""
        return cls(method=method, endpoint=endpoint)

    @classmethod
    def new_with_body(
        cls,
        method: Union[str, HTTPMethod],
        endpoint: str,
        body: Union[Mapping[Any, Any], Iterable[tuple[Any, Any]]],
    ) -> MatrixRequest[dict[str, str]]:
        """Make a request whose body is a flat string-to-string object.

        Args:
            method: HTTP verb.
            endpoint: API endpoint without the prefix.
            body: A mapping or any iterable of key/value pairs. Keys and
                values are converted with :func:`str`; a repeated key keeps
                its last value.
        """
        pairs = body.items() if isinstance(body, Mapping) else body
        return cls(
            method=method,
            endpoint=endpoint,
            body={str(k): str(v) for k, v in pairs},
        )

    def with_params(self, **params: Any) -> MatrixRequest[B]:
        """Return a copy with *params* merged over the existing parameters."""
        return replace(self, params={**self.params, **params})

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def serialize_body(self) -> Optional[bytes]:
        """Serialise the body to compact JSON.

        Returns:
            The UTF-8 encoded JSON text, or ``None`` if it is ``{}`` (or
            ``null``, the serialisation of ``None``).

        Raises:
            SerializationError: If the body is not representable as JSON,
                e.g. it contains ``NaN`` or an unsupported type.
        """
        value: Any = self.body
        try:
            if isinstance(value, BaseModel):
                value = value.model_dump(mode="json", exclude_none=True)
            text = json.dumps(
                value,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise SerializationError(
                f"Cannot serialise body for {self.method} {self.endpoint}: {exc}"
            ) from exc
        if text in _EMPTY_BODIES:
            return None
        return text.encode("utf-8")

    def query_string(self, access_token: str) -> str:
        """Assemble the query string, ``access_token`` first and unencoded."""
        query = f"access_token={access_token}"
        for key, value in self.params.items():
            query += f"&{encode_component(key)}={encode_component(value)}"
        return query

    def build_url(self, client: MatrixClient) -> httpx.URL:
        """Build the full request URL against *client*'s homeserver.

        Raises:
            UrlParseError: If the endpoint contains characters that are not
                valid in a URL, or the result is not an absolute ``http(s)``
                URL (for instance because the homeserver URL is empty).
        """
        if not _ENDPOINT_RE.fullmatch(self.endpoint):
            raise UrlParseError(
                f"Invalid endpoint {self.endpoint!r}: percent-encode it before building the request"
            )
        raw = f"{client.url}{CLIENT_API_PREFIX}{self.endpoint}?{self.query_string(client.access_token)}"
        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as exc:
            raise UrlParseError(f"Invalid request URL {raw!r}: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise UrlParseError(
                f"Invalid request URL {raw!r}: expected an absolute http(s) URL"
            )
        return url

    def make_request(self, client: MatrixClient) -> httpx.Request:
        """Make an :class:`httpx.Request` from this value.

        The result can be sent with
        :meth:`~mxrequest.client.MatrixClient.send_request` or
        :meth:`~mxrequest.client.MatrixClient.send_discarding_request`.

        Raises:
            SerializationError: If the body cannot be serialised.
            UrlParseError: If the URL is invalid.
        """
        body = self.serialize_body()
        url = self.build_url(client)
        logger.debug("Built %s %s", self.method, redact_url(url))
        if body is None:
            return httpx.Request(self.method, url)
        return httpx.Request(
            self.method,
            url,
            content=body,
            headers={"Content-Type": "application/json"},
        )

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #

    async def send(self, client: MatrixClient, response_type: Any = dict) -> Any:
        """Send this request and decode the response as *response_type*.

        The request is built before the first ``await``, so a
        :class:`SerializationError` or :class:`UrlParseError` is raised
        without any network activity.

        Args:
            client: The API client handle.
            response_type: Anything :class:`pydantic.TypeAdapter` accepts;
                usually a model class or ``dict``.
        """
        request = self.make_request(client)
        return await client.send_request(request, response_type)

    async def discarding_send(self, client: MatrixClient) -> None:
        """Like :meth:`send`, but the response body is not decoded."""
        request = self.make_request(client)
        await client.send_discarding_request(request)
