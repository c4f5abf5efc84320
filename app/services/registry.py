"""
app.services.registry
~~~~~~~~~~~~~~~~~~~~~

连接注册表 —— 记录所有在线连接，以及每个连接当前绑定的房间。

绑定关系是一个整体的 ``Membership`` 值，``bind`` / ``unbind`` 一次性替换，
不存在"有房间没成员名"的中间状态。注册表同时维护房间 → 连接的索引，
供广播时按房间查找收件人。
"""
from __future__ import annotations

from fastapi import WebSocket

from app.core.logging import get_logger
from app.services.connection import ClientConnection, Membership

logger = get_logger(__name__)


class ConnectionRegistry:
    """在线连接注册表。"""

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}
        # room_id -> {conn_id: connection}，保持加入顺序
        self._by_room: dict[str, dict[str, ClientConnection]] = {}

    def register(self, websocket: WebSocket, conn_id: str | None = None) -> ClientConnection:
        """为新的 WebSocket 创建连接对象并登记。"""
        conn = ClientConnection(websocket, conn_id=conn_id)
        self._connections[conn.conn_id] = conn
        return conn

    def unregister(self, conn: ClientConnection) -> None:
        """移除连接。调用方需先完成隐式离开房间。"""
        self._unindex(conn)
        conn.membership = None
        self._connections.pop(conn.conn_id, None)

    def bind(self, conn: ClientConnection, membership: Membership) -> None:
        """把连接绑定到房间，已有绑定会被整体替换。"""
        self._unindex(conn)
        conn.membership = membership
        self._by_room.setdefault(membership.room_id, {})[conn.conn_id] = conn
        logger.debug(
            "连接已绑定 | conn=%s | room=%s | user=%s",
            conn.conn_id, membership.room_id, membership.user_name,
        )

    def unbind(self, conn: ClientConnection) -> Membership | None:
        """解除绑定，返回原来的绑定（未绑定时返回 ``None``）。"""
        previous = conn.membership
        self._unindex(conn)
        conn.membership = None
        return previous

    def connections_in(self, room_id: str) -> list[ClientConnection]:
        """当前绑定到 ``room_id`` 的所有连接（调用时刻的快照）。"""
        return list(self._by_room.get(room_id, {}).values())

    def get(self, conn_id: str) -> ClientConnection | None:
        return self._connections.get(conn_id)

    def _unindex(self, conn: ClientConnection) -> None:
        if conn.membership is None:
            return
        room_conns = self._by_room.get(conn.membership.room_id)
        if room_conns is None:
            return
        room_conns.pop(conn.conn_id, None)
        if not room_conns:
            del self._by_room[conn.membership.room_id]

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: object) -> bool:
        return isinstance(conn, ClientConnection) and conn.conn_id in self._connections
