"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— mock 掉远程执行服务，使测试可在无网络环境下运行。
"""
from __future__ import annotations

import os
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")  # 关闭保活 ping，日志级别 DEBUG

from app.services.connection import ClientConnection  # noqa: E402
from app.services.execution import ExecutionProxy  # noqa: E402
from app.services.registry import ConnectionRegistry  # noqa: E402
from app.services.room_broadcaster import RoomBroadcaster  # noqa: E402
from app.services.room_store import RoomStore  # noqa: E402
from app.services.session import SessionHandler  # noqa: E402

PLACEHOLDER: str = "// start code here"
FAKE_RESULT: dict = {"language": "python", "version": "3.10.0", "run": {"output": "1\n"}}


@pytest.fixture()
def mock_proxy() -> MagicMock:
    """返回一个 mock 的 ``ExecutionProxy``，execute 固定返回成功结果。"""
    proxy = MagicMock(spec=ExecutionProxy)
    proxy.execute = AsyncMock(return_value=FAKE_RESULT)
    proxy.aclose = AsyncMock()
    return proxy


@pytest.fixture()
def handler(mock_proxy: MagicMock) -> SessionHandler:
    """装配好的协议处理器（真实仓库 / 注册表 / 广播器 + mock 执行代理）。"""
    store = RoomStore(default_document=PLACEHOLDER)
    registry = ConnectionRegistry()
    return SessionHandler(
        store=store,
        registry=registry,
        broadcaster=RoomBroadcaster(registry),
        proxy=mock_proxy,
    )


@pytest.fixture()
def connect(handler: SessionHandler) -> Callable[[str], ClientConnection]:
    """返回一个工厂函数：登记一个带假 WebSocket 的新连接。"""

    def _connect(conn_id: str) -> ClientConnection:
        return handler.registry.register(MagicMock(), conn_id=conn_id)

    return _connect
