"""
app.services.room_store
~~~~~~~~~~~~~~~~~~~~~~~

房间仓库 —— 房间 ID 到 ``CollabRoom`` 的唯一权威映射。

所有方法都是同步的，运行在单个事件循环里时天然不会被其他协程打断，
因此 ``get_or_create`` 对同一个新房间的并发首次加入是原子的。
只有 ``join`` 事件会通过 ``get_or_create`` 创建房间，其余写操作遇到
不存在的房间一律静默跳过。
"""
from __future__ import annotations

import time
from collections.abc import Callable

from app.core.logging import get_logger
from app.schemas.collab_events import RoomInfoData
from app.services.room import CollabRoom

logger = get_logger(__name__)


class RoomStore:
    """协作房间的内存仓库。

    Attributes:
        default_document: 新房间的初始文档。
    """

    def __init__(
        self,
        default_document: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_document = default_document
        self._clock = clock
        self._rooms: dict[str, CollabRoom] = {}

    def get_or_create(self, room_id: str) -> CollabRoom:
        """获取房间，不存在则以初始文档创建。"""
        room = self._rooms.get(room_id)
        if room is None:
            room = CollabRoom(room_id, self.default_document, created_at=self._clock())
            self._rooms[room_id] = room
            logger.info("房间已创建 | room_id=%s", room_id)
        return room

    def get(self, room_id: str) -> CollabRoom | None:
        return self._rooms.get(room_id)

    def exists(self, room_id: str) -> bool:
        return room_id in self._rooms

    def add_member(self, room_id: str, name: str) -> None:
        self.get_or_create(room_id).add_member(name)

    def remove_member(self, room_id: str, name: str) -> None:
        """移除成员；房间或成员不存在时为空操作。"""
        room = self._rooms.get(room_id)
        if room is not None:
            room.remove_member(name, now=self._clock())

    def set_document(self, room_id: str, text: str) -> bool:
        """整体替换文档（后写者胜，无版本校验）。

        Returns:
            房间是否存在。不存在时不会创建房间，也不做任何修改。
        """
        room = self._rooms.get(room_id)
        if room is None:
            return False
        room.document = text
        return True

    def get_document(self, room_id: str) -> str:
        room = self._rooms.get(room_id)
        return room.document if room is not None else self.default_document

    def list_members(self, room_id: str) -> list[str]:
        room = self._rooms.get(room_id)
        return room.members if room is not None else []

    def list_rooms(self) -> list[RoomInfoData]:
        """列出所有房间的摘要信息。"""
        return [room.info() for room in self._rooms.values()]

    def evict_idle(self, ttl: float) -> list[str]:
        """回收空置时间达到 ``ttl`` 秒的空房间。

        Args:
            ttl: 空置阈值（秒），``<= 0`` 时不回收任何房间。

        Returns:
            被回收的房间 ID 列表。
        """
        if ttl <= 0:
            return []
        now = self._clock()
        evicted = [rid for rid, room in self._rooms.items() if room.is_idle(now, ttl)]
        for rid in evicted:
            del self._rooms[rid]
        if evicted:
            logger.info("回收空房间 | count=%d | rooms=%s", len(evicted), evicted)
        return evicted

    def __len__(self) -> int:
        return len(self._rooms)
