"""
app.services.collab_system
~~~~~~~~~~~~~~~~~~~~~~~~~~

协作系统 —— 组装房间仓库、连接注册表、广播器、执行代理和协议处理器，
并负责后台任务（空房间回收、保活 ping）的生命周期。

在 FastAPI lifespan 中创建并挂载到 ``app.state.collab_system``。
"""
from __future__ import annotations

import asyncio
import contextlib

from app.core.logging import get_logger
from app.core.rate_limit import WebSocketRateLimiter
from app.core.settings import Settings
from app.schemas.collab_events import RoomInfoData
from app.services.execution import ExecutionProxy
from app.services.keepalive import keepalive_loop
from app.services.registry import ConnectionRegistry
from app.services.room_broadcaster import RoomBroadcaster
from app.services.room_store import RoomStore
from app.services.session import SessionHandler

logger = get_logger(__name__)


class CollabSystem:
    """协作系统（每个进程一个实例）。

    - ``start()``      → 启动空房间回收任务（以及 dev 环境的保活任务）
    - ``aclose()``     → 停止后台任务，关闭执行代理
    - ``list_rooms()`` → 列出所有房间摘要

    Attributes:
        store: 房间仓库。
        registry: 连接注册表。
        broadcaster: 房间广播器。
        handler: 会话协议处理器。
        compile_limiter: ``compileCode`` 事件的连接级限流器。
    """

    def __init__(self, settings: Settings, proxy: ExecutionProxy | None = None) -> None:
        self.settings = settings
        self.store = RoomStore(default_document=settings.DEFAULT_DOCUMENT)
        self.registry = ConnectionRegistry()
        self.broadcaster = RoomBroadcaster(self.registry)
        self.proxy = proxy or ExecutionProxy(
            endpoint=settings.EXECUTION_API_URL,
            timeout=settings.EXECUTION_TIMEOUT,
        )
        self.handler = SessionHandler(
            store=self.store,
            registry=self.registry,
            broadcaster=self.broadcaster,
            proxy=self.proxy,
        )
        self.compile_limiter = WebSocketRateLimiter(
            interval_seconds=settings.WS_COMPILE_RATE_LIMIT_INTERVAL,
        )
        self._tasks: list[asyncio.Task[None]] = []

    def start(self) -> None:
        """启动后台任务。"""
        if self.settings.ROOM_IDLE_TTL_SECONDS > 0:
            self._tasks.append(asyncio.create_task(self._sweep_loop()))
        if self.settings.keepalive_enabled:
            self._tasks.append(
                asyncio.create_task(
                    keepalive_loop(
                        self.settings.keepalive_url,
                        self.settings.KEEPALIVE_INTERVAL_SECONDS,
                    ),
                ),
            )

    async def aclose(self) -> None:
        """停止后台任务与进行中的远程执行，释放 HTTP 连接池。"""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        self.handler.cancel_inflight()
        await self.handler.wait_inflight()
        await self.proxy.aclose()

    def list_rooms(self) -> list[RoomInfoData]:
        return self.store.list_rooms()

    async def _sweep_loop(self) -> None:
        """定期回收长时间无人的房间。"""
        while True:
            await asyncio.sleep(self.settings.ROOM_SWEEP_INTERVAL_SECONDS)
            self.store.evict_idle(self.settings.ROOM_IDLE_TTL_SECONDS)
