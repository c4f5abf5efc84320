"""
tests.test_execution
~~~~~~~~~~~~~~~~~~~~

ExecutionProxy 单元测试 —— 用 ``httpx.MockTransport`` 模拟远程执行服务。
"""
from __future__ import annotations

import json

import httpx
import pytest

from app.schemas.collab_events import ExecutionRequest
from app.services.execution import ExecutionProxy

ENDPOINT = "https://execution.test/api/v2/piston/execute"
REQUEST = ExecutionRequest(source="print(input())", language="python", version="3.10.0", stdin="hi")
FAILED = {"run": {"output": "Compilation failed."}}


def make_proxy(handler) -> ExecutionProxy:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExecutionProxy(endpoint=ENDPOINT, client=client)


class TestExecutionProxy:
    """测试请求体格式与失败转换。"""

    @pytest.mark.asyncio
    async def test_success_body_is_forwarded_verbatim(self) -> None:
        captured: list[httpx.Request] = []
        body = {"language": "python", "version": "3.10.0", "run": {"stdout": "hi\n", "output": "hi\n", "code": 0}}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json=body)

        proxy = make_proxy(handler)
        result = await proxy.execute(REQUEST)
        await proxy.aclose()

        assert result == body
        assert len(captured) == 1
        assert captured[0].method == "POST"
        assert str(captured[0].url) == ENDPOINT
        assert json.loads(captured[0].content) == {
            "language": "python",
            "version": "3.10.0",
            "files": [{"content": "print(input())"}],
            "stdin": "hi",
        }

    @pytest.mark.asyncio
    async def test_network_error_becomes_placeholder(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        proxy = make_proxy(handler)
        assert await proxy.execute(REQUEST) == FAILED
        await proxy.aclose()

    @pytest.mark.asyncio
    async def test_timeout_becomes_placeholder(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        proxy = make_proxy(handler)
        assert await proxy.execute(REQUEST) == FAILED
        await proxy.aclose()

    @pytest.mark.asyncio
    async def test_error_status_becomes_placeholder(self) -> None:
        proxy = make_proxy(lambda request: httpx.Response(400, json={"message": "runtime unknown"}))
        assert await proxy.execute(REQUEST) == FAILED
        await proxy.aclose()

    @pytest.mark.asyncio
    async def test_malformed_body_becomes_placeholder(self) -> None:
        proxy = make_proxy(lambda request: httpx.Response(200, text="<html>oops</html>"))
        assert await proxy.execute(REQUEST) == FAILED
        await proxy.aclose()

    @pytest.mark.asyncio
    async def test_placeholder_is_a_fresh_object(self) -> None:
        """失败占位每次都是新对象，修改一份不影响下一次。"""
        proxy = make_proxy(lambda request: httpx.Response(500))

        first = await proxy.execute(REQUEST)
        first["run"]["output"] = "tampered"
        second = await proxy.execute(REQUEST)
        await proxy.aclose()

        assert second == FAILED


def test_request_wire_format_defaults_stdin() -> None:
    request = ExecutionRequest(source="x", language="go", version="1.16.2")

    assert request.to_wire()["stdin"] == ""
