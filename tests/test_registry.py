"""
tests.test_registry
~~~~~~~~~~~~~~~~~~~

ConnectionRegistry + RoomBroadcaster + ClientConnection 单元测试。
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.services.connection import ClientConnection, Membership
from app.services.registry import ConnectionRegistry
from app.services.room_broadcaster import RoomBroadcaster


class TestConnectionRegistry:
    """测试连接登记与房间绑定。"""

    def setup_method(self) -> None:
        self.registry = ConnectionRegistry()

    def test_register_and_unregister(self) -> None:
        conn = self.registry.register(MagicMock(), conn_id="c1")

        assert conn in self.registry
        assert self.registry.get("c1") is conn
        assert len(self.registry) == 1

        self.registry.unregister(conn)
        assert conn not in self.registry
        assert len(self.registry) == 0

    def test_generated_ids_are_unique(self) -> None:
        a = self.registry.register(MagicMock())
        b = self.registry.register(MagicMock())

        assert a.conn_id != b.conn_id
        assert a.conn_id.startswith("ws-")

    def test_bind_replaces_membership_as_a_whole(self) -> None:
        """重新绑定后连接只属于新房间。"""
        conn = self.registry.register(MagicMock(), conn_id="c1")

        self.registry.bind(conn, Membership("r1", "alice"))
        self.registry.bind(conn, Membership("r2", "alice"))

        assert conn.membership == Membership("r2", "alice")
        assert self.registry.connections_in("r1") == []
        assert self.registry.connections_in("r2") == [conn]

    def test_unbind_returns_previous_membership(self) -> None:
        conn = self.registry.register(MagicMock(), conn_id="c1")
        self.registry.bind(conn, Membership("r1", "alice"))

        previous = self.registry.unbind(conn)

        assert previous == Membership("r1", "alice")
        assert conn.membership is None
        assert conn.room_id is None
        assert self.registry.unbind(conn) is None

    def test_unregister_clears_room_index(self) -> None:
        conn = self.registry.register(MagicMock(), conn_id="c1")
        self.registry.bind(conn, Membership("r1", "alice"))

        self.registry.unregister(conn)

        assert self.registry.connections_in("r1") == []


class TestRoomBroadcaster:
    """测试三种广播范围。"""

    def setup_method(self) -> None:
        self.registry = ConnectionRegistry()
        self.broadcaster = RoomBroadcaster(self.registry)
        self.alice = self.registry.register(MagicMock(), conn_id="alice")
        self.bob = self.registry.register(MagicMock(), conn_id="bob")
        self.carol = self.registry.register(MagicMock(), conn_id="carol")
        self.registry.bind(self.alice, Membership("r1", "alice"))
        self.registry.bind(self.bob, Membership("r1", "bob"))
        self.registry.bind(self.carol, Membership("r2", "carol"))

    def test_to_room(self) -> None:
        count = self.broadcaster.to_room("r1", "languageUpdate", "python")

        assert count == 2
        assert self.alice.drain_outbox() == [{"event": "languageUpdate", "data": "python"}]
        assert self.bob.drain_outbox() == [{"event": "languageUpdate", "data": "python"}]
        assert self.carol.drain_outbox() == []

    def test_to_room_except_sender(self) -> None:
        count = self.broadcaster.to_room_except("r1", self.alice, "userTyping", "alice")

        assert count == 1
        assert self.alice.drain_outbox() == []
        assert self.bob.drain_outbox() == [{"event": "userTyping", "data": "alice"}]

    def test_to_sender(self) -> None:
        self.broadcaster.to_sender(self.carol, "codeUpdate", "x")

        assert self.carol.drain_outbox() == [{"event": "codeUpdate", "data": "x"}]
        assert self.alice.drain_outbox() == []

    def test_unknown_room_is_noop(self) -> None:
        assert self.broadcaster.to_room("ghost", "languageUpdate", "go") == 0


class TestClientConnection:
    """测试发件箱与写协程。"""

    @pytest.mark.asyncio
    async def test_writer_loop_sends_in_order_until_closed(self) -> None:
        ws = MagicMock()
        ws.send_json = AsyncMock()
        conn = ClientConnection(ws, conn_id="c1")

        conn.send("codeUpdate", "a")
        conn.send("userJoined", ["alice"])
        conn.close()
        await conn.writer_loop()

        sent = [call.args[0] for call in ws.send_json.call_args_list]
        assert sent == [
            {"event": "codeUpdate", "data": "a"},
            {"event": "userJoined", "data": ["alice"]},
        ]

    @pytest.mark.asyncio
    async def test_writer_loop_stops_on_send_failure(self) -> None:
        """写失败只结束写协程，不向外抛异常。"""
        ws = MagicMock()
        ws.send_json = AsyncMock(side_effect=RuntimeError("socket closed"))
        conn = ClientConnection(ws, conn_id="c1")

        conn.send("codeUpdate", "a")
        conn.send("codeUpdate", "b")
        await conn.writer_loop()

        assert ws.send_json.call_count == 1
