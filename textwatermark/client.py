"""
Remote watermarking API client.

Thin async wrapper around httpx: one authenticated POST per call,
fixed timeout, no retries. Failures are raised as RemoteError
(non-2xx) or TransportError (network/timeout/malformed body).

The client is protocol-agnostic - it knows nothing about MCP.
"""

import json
from types import TracebackType
from typing import Any, Protocol

import httpx

from textwatermark.errors import RemoteError, TransportError

REQUEST_TIMEOUT_SECONDS = 15.0

# The service expects "Token <key>", not "Bearer <key>"
AUTH_SCHEME = "Token"


class ClientConfig(Protocol):
    """Anything carrying a base URL and token (EffectiveConfig in practice)"""

    @property
    def base_url(self) -> str: ...

    @property
    def token(self) -> str | None: ...


def _describe_body(response: httpx.Response) -> str:
    """Compact JSON body if parseable, raw text otherwise"""
    try:
        return json.dumps(response.json(), separators=(",", ":"), ensure_ascii=False)
    except ValueError:
        return response.text


def _describe_cause(exc: Exception) -> str:
    # httpx timeouts frequently carry an empty message
    return str(exc) or type(exc).__name__


class WatermarkClient:
    """Authenticated client for the text watermarking API

    Usage:
        async with WatermarkClient(config) as client:
            data = await client.call("/api/watermark/decode", {"text": "..."})

    One httpx.AsyncClient (and its connection pool) is shared by all calls,
    so concurrent invocations need no coordination.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if config.token:
            headers["Authorization"] = f"{AUTH_SCHEME} {config.token}"

        self.base_url = config.base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "WatermarkClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def call(self, endpoint_path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST payload to endpoint_path and return the decoded JSON object

        Raises:
            RemoteError: non-2xx status (carries status_code and body)
            TransportError: timeout, connection failure, or non-object body
        """
        url = f"{self.base_url}{endpoint_path}"
        try:
            response = await self._http.post(url, json=payload)
        except httpx.RequestError as e:
            raise TransportError(_describe_cause(e)) from e

        if not response.is_success:
            raise RemoteError(response.status_code, _describe_body(response))

        try:
            data = response.json()
        except ValueError as e:
            msg = f"Malformed response from {endpoint_path}: body is not JSON"
            raise TransportError(msg) from e

        if not isinstance(data, dict):
            msg = f"Malformed response from {endpoint_path}: expected a JSON object"
            raise TransportError(msg)
        return data


def read_field(response: dict[str, Any], field: str) -> str:
    """Pull a string field out of a remote response"""
    value = response.get(field)
    if not isinstance(value, str):
        msg = f"Malformed response: missing '{field}' field"
        raise TransportError(msg)
    return value
