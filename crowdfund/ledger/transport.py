"""
Transport protocol for JSON-RPC calls.

Defines the seam where concrete HTTP implementations plug in. The JSON-RPC
client depends on this protocol, not on httpx directly, so the transport
can be swapped for test fakes without editing client logic.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)

Every transport failure leaves this module as a typed error:
    - connection refused, TLS, DNS, HTTP 429 / 5xx  -> NetworkError
    - request timed out                             -> LedgerTimeoutError
    - other HTTP 4xx, body not a JSON object        -> ProtocolError
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from crowdfund.errors import LedgerTimeoutError, NetworkError, ProtocolError

logger = logging.getLogger(__name__)


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Async transport for JSON-RPC POST requests."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a JSON-RPC request and return the parsed response.

        Args:
            url: The JSON-RPC endpoint URL.
            payload: The JSON-RPC request body (jsonrpc, id, method, params).

        Returns:
            Parsed JSON response as a dict.

        Raises:
            NetworkError: The request did not get a usable answer.
            LedgerTimeoutError: The request timed out.
            ProtocolError: The answer is not a JSON-RPC object.
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Args:
        timeout: Request timeout in seconds.
        headers: Additional headers to include in requests.
    """

    def __init__(self, timeout: float = 30.0, headers: dict[str, str] | None = None) -> None:
        self._timeout = timeout
        self._headers = headers or {}

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send JSON-RPC request via httpx."""
        method = payload.get("method")
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json", **self._headers},
                )
        except httpx.TimeoutException as exc:
            raise LedgerTimeoutError(
                f"{method} timed out after {self._timeout}s",
                details={"url": url, "method": method, "timeout_s": self._timeout},
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(
                f"{method} failed: {exc}",
                details={"url": url, "method": method},
            ) from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                details={"url": url, "method": method, "status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise ProtocolError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                details={"url": url, "method": method, "status_code": response.status_code},
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise ProtocolError(
                "response was not valid JSON",
                details={"url": url, "method": method, "body_preview": response.text[:200]},
            ) from exc

        if not isinstance(result, dict):
            raise ProtocolError(
                "response JSON was not an object",
                details={"url": url, "method": method, "type": type(result).__name__},
            )

        logger.debug("%s -> HTTP %s", method, response.status_code)
        return result
