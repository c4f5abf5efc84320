"""
app.services.room_broadcaster
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间广播器 —— 把事件投递给房间内全体 / 除发送者外的全体 / 发送者本人。

收件人名单在调用时刻从 ``ConnectionRegistry`` 读取。投递只是放入各连接的
发件箱，不等待送达确认，也不向业务层暴露投递失败。
"""
from __future__ import annotations

from typing import Any

from app.core.logging import get_logger
from app.services.connection import ClientConnection
from app.services.registry import ConnectionRegistry

logger = get_logger(__name__)


class RoomBroadcaster:
    """基于连接注册表的房间广播器。"""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def to_room(self, room_id: str, event: str, data: Any) -> int:
        """投递给房间内的所有连接，返回收件人数。"""
        recipients = self.registry.connections_in(room_id)
        for conn in recipients:
            conn.send(event, data)
        logger.debug("广播 | room=%s | event=%s | recipients=%d", room_id, event, len(recipients))
        return len(recipients)

    def to_room_except(
        self, room_id: str, sender: ClientConnection, event: str, data: Any,
    ) -> int:
        """投递给房间内除 ``sender`` 之外的所有连接，返回收件人数。"""
        recipients = [
            conn for conn in self.registry.connections_in(room_id)
            if conn.conn_id != sender.conn_id
        ]
        for conn in recipients:
            conn.send(event, data)
        logger.debug("广播(排除发送者) | room=%s | event=%s | recipients=%d", room_id, event, len(recipients))
        return len(recipients)

    def to_sender(self, conn: ClientConnection, event: str, data: Any) -> None:
        """只投递给单个连接。"""
        conn.send(event, data)
