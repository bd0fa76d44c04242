"""HTTP transport boundary for the proq client.

The client only needs "send a request, get status and body bytes back".
Transport implementations must report timeouts as QueryTimeout and
connection-level problems as ConnectionFailure. Any HTTP status counts as
a delivered response, but a body httpx cannot decode is a MalformedResponse.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx

from .errors import ConnectionFailure, MalformedResponse, QueryTimeout


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes


class Transport(Protocol):
    async def send(
        self,
        method: str,
        path: str,
        params: Sequence[tuple[str, str]],
        timeout: float | None,
    ) -> TransportResponse: ...


class HttpxTransport:
    """Transport backed by httpx.AsyncClient.

    A fresh AsyncClient is opened for every call, so no connection outlives
    the query that created it.
    """

    def __init__(
        self,
        base_url: str,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize transport.

        Args:
            base_url: Server root URL (e.g., https://localhost:9090)
            http_transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._http_transport = http_transport

    async def send(
        self,
        method: str,
        path: str,
        params: Sequence[tuple[str, str]],
        timeout: float | None,
    ) -> TransportResponse:
        """Send one request and return the raw response.

        GET params go in the query string, POST params are form-encoded in
        the body.

        Raises:
            QueryTimeout: If httpx reports a connect/read/write/pool timeout
            ConnectionFailure: On DNS, refused, reset, protocol or redirect errors
            MalformedResponse: If the body cannot be decoded per Content-Encoding
        """
        url = f"{self.base_url}{path}"
        params = list(params)

        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=self._http_transport
            ) as client:
                if method == "POST":
                    response = await client.post(url, data=_form(params))
                else:
                    response = await client.request(method, url, params=params)
                return TransportResponse(response.status_code, response.content)

        except httpx.TimeoutException as e:
            raise QueryTimeout(timeout, str(e)) from e
        except httpx.DecodingError as e:
            raise MalformedResponse(f"Undecodable response body: {e}") from e
        except httpx.HTTPError as e:
            raise ConnectionFailure(f"Unable to reach {self.base_url}: {e}") from e


def _form(params: list[tuple[str, str]]) -> dict[str, list[str]]:
    """Group params by name, keeping repeated keys such as match[]."""
    form: dict[str, list[str]] = {}
    for name, value in params:
        form.setdefault(name, []).append(value)
    return form
