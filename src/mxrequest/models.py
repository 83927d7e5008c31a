"""Canonical Pydantic models shared across all mxrequest modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`GlobalConfig`,
    and :class:`Profile`.

**Matrix wire models** -- request verbs and the handful of response shapes
the client itself understands:
    :class:`HTTPMethod`, :class:`MatrixErrorBody`, :class:`LoginResponse`,
    and :class:`WhoAmIResponse`.

All models use Pydantic v2. Wire models use ``extra="allow"`` because
homeservers routinely add fields beyond the documented ones.
"""

from __future__ import annotations

import enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Config models ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every call made by a client."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format used when no --json or --plain flag is given"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/mxrequest/config.json``.

    Fields here have the lowest precedence and can be overridden by project
    config, environment variables, or CLI flags. See
    :func:`~mxrequest.config.resolve_config` for the full precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


class Profile(BaseModel):
    """Per-homeserver profile stored as JSON under the ``profiles/`` directory.

    A profile names a homeserver and says where its access token comes from.
    The token itself is never written to the profile unless the source is a
    literal ``token:`` descriptor (as produced by ``mxreq login --save``).

    See Also:
        :func:`~mxrequest.config.load_profile`: Deserialise a profile by name.
        :func:`~mxrequest.client.MatrixClient.from_profile`: Build a client.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    homeserver: str = Field(description="Homeserver base URL, e.g. https://matrix.org")
    user_id: Optional[str] = Field(
        default=None, description="Fully-qualified user ID, e.g. @alice:matrix.org"
    )
    access_token_source: str = Field(
        default="env:MATRIX_ACCESS_TOKEN",
        description="Token source: env:VAR, file:/path, prompt, token:VALUE",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Matrix wire models ---


class HTTPMethod(str, enum.Enum):
    """HTTP verbs used by the client-server API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class MatrixErrorBody(BaseModel):
    """The standard error object returned with non-2xx responses.

    ``retry_after_ms`` is only present on ``M_LIMIT_EXCEEDED`` errors.
    """

    model_config = ConfigDict(extra="allow")

    errcode: Optional[str] = None
    error: Optional[str] = None
    retry_after_ms: Optional[int] = None


class LoginResponse(BaseModel):
    """Response of ``POST /login``."""

    model_config = ConfigDict(extra="allow")

    user_id: str
    access_token: str
    device_id: Optional[str] = None
    home_server: Optional[str] = None


class WhoAmIResponse(BaseModel):
    """Response of ``GET /account/whoami``."""

    model_config = ConfigDict(extra="allow")

    user_id: str
    device_id: Optional[str] = None
