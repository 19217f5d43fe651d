"""Tests for HttpxTransport against a mocked HTTP layer."""

from __future__ import annotations

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from crowdfund.errors import LedgerTimeoutError, NetworkError, ProtocolError
from crowdfund.ledger.transport import HttpxTransport, JsonRpcTransport

URL = "https://rpc.example.test/"
PAYLOAD = {"jsonrpc": "2.0", "id": 1, "method": "getHealth", "params": []}


class TestHttpxTransport:
    def test_protocol(self) -> None:
        assert isinstance(HttpxTransport(), JsonRpcTransport)

    @pytest.mark.asyncio
    async def test_posts_json(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=URL, method="POST", json={"jsonrpc": "2.0", "id": 1, "result": "ok"})

        result = await HttpxTransport(headers={"X-Api-Key": "k"}).post_json(URL, PAYLOAD)

        assert result["result"] == "ok"
        request = httpx_mock.get_requests()[0]
        assert json.loads(request.content) == PAYLOAD
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Api-Key"] == "k"

    @pytest.mark.asyncio
    async def test_rpc_error_body_returned(self, httpx_mock: HTTPXMock) -> None:
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}}
        httpx_mock.add_response(url=URL, json=body)

        result = await HttpxTransport().post_json(URL, PAYLOAD)

        assert result == body

    @pytest.mark.asyncio
    async def test_timeout(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

        with pytest.raises(LedgerTimeoutError) as exc_info:
            await HttpxTransport(timeout=2.0).post_json(URL, PAYLOAD)

        assert exc_info.value.details["timeout_s"] == 2.0
        assert exc_info.value.details["method"] == "getHealth"

    @pytest.mark.asyncio
    async def test_connection_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        with pytest.raises(NetworkError) as exc_info:
            await HttpxTransport().post_json(URL, PAYLOAD)

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 502, 503])
    async def test_retryable_status(self, httpx_mock: HTTPXMock, status: int) -> None:
        httpx_mock.add_response(url=URL, status_code=status)

        with pytest.raises(NetworkError) as exc_info:
            await HttpxTransport().post_json(URL, PAYLOAD)

        assert exc_info.value.details["status_code"] == status

    @pytest.mark.asyncio
    async def test_client_error_status(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=URL, status_code=403)

        with pytest.raises(ProtocolError):
            await HttpxTransport().post_json(URL, PAYLOAD)

    @pytest.mark.asyncio
    async def test_non_json_body(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=URL, text="<html>gateway</html>")

        with pytest.raises(ProtocolError) as exc_info:
            await HttpxTransport().post_json(URL, PAYLOAD)

        assert "gateway" in exc_info.value.details["body_preview"]

    @pytest.mark.asyncio
    async def test_json_not_object(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=URL, json=[1, 2, 3])

        with pytest.raises(ProtocolError):
            await HttpxTransport().post_json(URL, PAYLOAD)
