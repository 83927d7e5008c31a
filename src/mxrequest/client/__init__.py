"""HTTP client module for mxrequest.

Provides the asynchronous API client handle that
:class:`~mxrequest.request.MatrixRequest` values are built against and sent
through, plus the response decoding bridge.

Classes:
    :class:`MatrixClient` -- non-blocking client backed by :class:`httpx.AsyncClient`.

Example::

    from mxrequest.client import MatrixClient

    async with MatrixClient("https://matrix.org", token) as client:
        me = await client.whoami()
"""

from mxrequest.client.async_client import MatrixClient
from mxrequest.client.response import decode_response

__all__ = ["MatrixClient", "decode_response"]
