"""Response decoding and display helpers.

:func:`decode_response` is the bridge between a raw :class:`httpx.Response`
and the typed value a caller asked for; it backs
:meth:`~mxrequest.client.MatrixClient.send_request`.
:func:`format_api_response` routes a response through the global
:class:`~mxrequest.output.OutputManager` for the ``mxreq`` CLI.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from mxrequest.exceptions import ResponseDecodeError
from mxrequest.output import get_output


def decode_response(response: httpx.Response, response_type: Any = dict) -> Any:
    """Decode the JSON body of *response* into *response_type*.

    An empty body decodes as ``{}`` so that endpoints returning nothing can
    still be requested with ``dict`` or an all-optional model.

    Args:
        response: A successful response.
        response_type: Anything :class:`pydantic.TypeAdapter` accepts.

    Raises:
        ResponseDecodeError: If the body is not JSON or does not validate.
    """
    content = response.content or b"{}"
    try:
        return TypeAdapter(response_type).validate_json(content)
    except ValidationError as exc:
        name = getattr(response_type, "__name__", repr(response_type))
        raise ResponseDecodeError(
            f"Cannot decode HTTP {response.status_code} response as {name}: {exc}"
        ) from exc


def format_api_response(response: httpx.Response) -> None:
    """Print the status line to stderr and the body to stdout."""
    output = get_output()
    output.info(f"HTTP {response.status_code} {response.reason_phrase or ''}")
    data = extract_response_data(response)
    if data is not None:
        output.format_response(data)


def extract_response_data(response: httpx.Response) -> Any:
    """Return the JSON body of *response*, its text, or ``None`` if empty."""
    if not response.content:
        return None

    try:
        return response.json()
    except ValueError:
        pass

    return response.text
