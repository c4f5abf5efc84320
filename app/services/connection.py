"""
app.services.connection
~~~~~~~~~~~~~~~~~~~~~~~

单个客户端 WebSocket 连接 —— 绑定关系 + 发件箱。

服务端发往客户端的消息先放入连接自己的发件箱（``asyncio.Queue``），
再由该连接专属的写协程依次写出。广播方因此从不等待网络 IO，
事件处理函数可以在不让出事件循环的情况下完成所有状态变更和广播。
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket

from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Membership:
    """连接在某个房间中的身份，房间与成员名总是成对出现。"""

    room_id: str
    user_name: str


class ClientConnection:
    """一个在线客户端连接。

    Attributes:
        conn_id: 连接唯一标识（仅用于日志和内部索引）。
        websocket: 底层 WebSocket。
        membership: 当前所在房间及成员名，未加入时为 ``None``。
    """

    def __init__(self, websocket: WebSocket, conn_id: str | None = None) -> None:
        self.conn_id = conn_id or f"ws-{uuid.uuid4().hex[:8]}"
        self.websocket = websocket
        self.membership: Membership | None = None
        self._outbox: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

    @property
    def room_id(self) -> str | None:
        return self.membership.room_id if self.membership else None

    def send(self, event: str, data: Any) -> None:
        """投递一条消息（不等待送达）。"""
        self._outbox.put_nowait({"event": event, "data": data})

    def close(self) -> None:
        """通知写协程在发完已排队消息后退出。"""
        self._outbox.put_nowait(None)

    def drain_outbox(self) -> list[dict[str, Any]]:
        """取出当前排队的全部消息（不含结束标记）。"""
        messages: list[dict[str, Any]] = []
        while not self._outbox.empty():
            message = self._outbox.get_nowait()
            if message is not None:
                messages.append(message)
        return messages

    async def writer_loop(self) -> None:
        """把发件箱中的消息依次写到 WebSocket，直到收到结束标记或写失败。"""
        while True:
            message = await self._outbox.get()
            if message is None:
                break
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                # 断开由传输层的 disconnect 事件统一处理
                logger.warning("消息写出失败，停止发送 | conn=%s | %s", self.conn_id, e)
                break

    def __repr__(self) -> str:
        return f"ClientConnection({self.conn_id!r}, membership={self.membership!r})"
