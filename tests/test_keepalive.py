"""
tests.test_keepalive
~~~~~~~~~~~~~~~~~~~~

保活自 ping 测试。
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.services.keepalive import keepalive_loop, ping_once


@pytest.mark.asyncio
async def test_ping_once_success() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    assert await ping_once(client, "http://localhost:5000") is True
    await client.aclose()


@pytest.mark.asyncio
async def test_ping_once_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))

    with caplog.at_level(logging.ERROR, logger="app.services.keepalive"):
        assert await ping_once(client, "http://localhost:5000") is False
    await client.aclose()

    assert "保活 ping 失败" in caplog.text


@pytest.mark.asyncio
async def test_keepalive_loop_pings_until_cancelled() -> None:
    hits: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(str(request.url))
        return httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    task = asyncio.create_task(keepalive_loop("http://localhost:5000/", 0.01, client=client))
    await asyncio.sleep(0.1)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    await client.aclose()

    assert len(hits) >= 2
    assert hits[0] == "http://localhost:5000/"


@pytest.mark.asyncio
async def test_ping_once_survives_misconfigured_url(caplog: pytest.LogCaptureFixture) -> None:
    """URL 配置错误同样只记日志，不会终止保活任务。"""
    client = MagicMock()
    client.get = AsyncMock(side_effect=httpx.InvalidURL("Invalid non-printable ASCII character in URL"))

    with caplog.at_level(logging.ERROR, logger="app.services.keepalive"):
        assert await ping_once(client, "http://local\x00host") is False

    assert "保活 ping 失败" in caplog.text
