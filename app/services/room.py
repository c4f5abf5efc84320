"""
app.services.room
~~~~~~~~~~~~~~~~~

协作房间领域模型 —— 一个房间 = 一组成员 + 一份当前文档。

成员名没有比字符串相等更强的身份语义，同名的多个连接共享一个成员条目。
房间内部为每个成员名记录持有它的连接数，只有最后一个同名连接离开时
该名字才会从成员列表中消失。
"""
from __future__ import annotations

from app.schemas.collab_events import RoomInfoData


class CollabRoom:
    """一个协作编辑房间。

    Attributes:
        room_id: 房间标识（客户端给定，不做校验）。
        document: 当前文档全文，整体替换（后写者胜）。
        empty_since: 成员数降为 0 的时间点；有成员时为 ``None``。
    """

    def __init__(self, room_id: str, document: str, created_at: float) -> None:
        self.room_id = room_id
        self.document = document
        self.empty_since: float | None = created_at
        # 成员名 -> 持有该名字的连接数；dict 保持插入顺序
        self._members: dict[str, int] = {}

    def add_member(self, name: str) -> None:
        self._members[name] = self._members.get(name, 0) + 1
        self.empty_since = None

    def remove_member(self, name: str, now: float) -> None:
        """移除一个成员引用。成员不存在时静默忽略。"""
        count = self._members.get(name)
        if count is None:
            return
        if count > 1:
            self._members[name] = count - 1
        else:
            del self._members[name]
            if not self._members:
                self.empty_since = now

    @property
    def members(self) -> list[str]:
        """按加入顺序排列的成员名。"""
        return list(self._members)

    @property
    def member_count(self) -> int:
        return len(self._members)

    def is_idle(self, now: float, ttl: float) -> bool:
        """房间为空且空置时间已达到 ``ttl``。"""
        return self.empty_since is not None and now - self.empty_since >= ttl

    def info(self) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            members=self.members,
            member_count=self.member_count,
        )
