"""
app.services.session
~~~~~~~~~~~~~~~~~~~~

会话协议处理器 —— 把客户端事件翻译为房间状态变更和广播。

每个连接是一个两态状态机：未加入（``membership is None``）/ 已加入
``Membership(room_id, user_name)``。除 ``compileCode`` 外，所有事件处理都是
同步函数：状态变更与广播投递在一次调用内完成，不会被其他连接的事件打断。

``compileCode`` 会把远程执行放到后台任务中，等待期间其他事件照常处理；
结果广播时不会校验文档是否已被修改（已知且接受的竞态）。
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from app.core.logging import get_logger
from app.schemas.collab_events import (
    EVENT_CODE_CHANGE,
    EVENT_CODE_RESPONSE,
    EVENT_CODE_UPDATE,
    EVENT_COMPILE_CODE,
    EVENT_JOIN,
    EVENT_LANGUAGE_CHANGE,
    EVENT_LANGUAGE_UPDATE,
    EVENT_LEAVE_ROOM,
    EVENT_TYPING,
    EVENT_USER_JOINED,
    EVENT_USER_TYPING,
    CodeChangePayload,
    CompileCodePayload,
    ExecutionRequest,
    JoinPayload,
    LanguageChangePayload,
    TypingPayload,
)
from app.services.connection import ClientConnection, Membership
from app.services.execution import ExecutionProxy
from app.services.registry import ConnectionRegistry
from app.services.room_broadcaster import RoomBroadcaster
from app.services.room_store import RoomStore

logger = get_logger(__name__)


class SessionHandler:
    """协作会话协议处理器。

    Attributes:
        store: 房间仓库。
        registry: 连接注册表。
        broadcaster: 房间广播器。
        proxy: 远程执行代理。
    """

    def __init__(
        self,
        store: RoomStore,
        registry: ConnectionRegistry,
        broadcaster: RoomBroadcaster,
        proxy: ExecutionProxy,
    ) -> None:
        self.store = store
        self.registry = registry
        self.broadcaster = broadcaster
        self.proxy = proxy
        self._inflight: set[asyncio.Task[None]] = set()
        self._handlers: dict[
            str, tuple[type[BaseModel], Callable[[ClientConnection, Any], None]]
        ] = {
            EVENT_JOIN: (JoinPayload, self.join),
            EVENT_CODE_CHANGE: (CodeChangePayload, self.code_change),
            EVENT_TYPING: (TypingPayload, self.typing),
            EVENT_LANGUAGE_CHANGE: (LanguageChangePayload, self.language_change),
            EVENT_COMPILE_CODE: (CompileCodePayload, self.compile_code),
        }

    # ── 分发 ──────────────────────────────────────────────────────────

    def dispatch(self, conn: ClientConnection, event: str, data: Any) -> None:
        """校验并处理一条客户端事件。

        未知事件和格式错误的载荷只记日志后丢弃，不影响连接本身。
        """
        if event == EVENT_LEAVE_ROOM:
            self.leave_room(conn)
            return

        entry = self._handlers.get(event)
        if entry is None:
            logger.warning("未知事件，已忽略 | conn=%s | event=%s", conn.conn_id, event)
            return

        model, handler = entry
        try:
            payload = model.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "事件载荷无效，已忽略 | conn=%s | event=%s | errors=%d",
                conn.conn_id, event, e.error_count(),
            )
            return
        handler(conn, payload)

    # ── 事件处理 ──────────────────────────────────────────────────────

    def join(self, conn: ClientConnection, payload: JoinPayload) -> None:
        """加入房间；已在其他房间时先隐式离开。"""
        if conn.membership is not None:
            self._leave(conn, notify_self=False)

        room = self.store.get_or_create(payload.room_id)
        self.store.add_member(payload.room_id, payload.user_name)
        self.registry.bind(conn, Membership(payload.room_id, payload.user_name))

        self.broadcaster.to_sender(conn, EVENT_CODE_UPDATE, room.document)
        self.broadcaster.to_room(
            payload.room_id, EVENT_USER_JOINED, self.store.list_members(payload.room_id),
        )
        logger.info(
            "用户加入房间 | room=%s | user=%s | members=%d",
            payload.room_id, payload.user_name, room.member_count,
        )

    def code_change(self, conn: ClientConnection, payload: CodeChangePayload) -> None:
        if not self.store.set_document(payload.room_id, payload.code):
            logger.debug("codeChange 指向不存在的房间，已忽略 | room=%s", payload.room_id)
            return
        self.broadcaster.to_room_except(payload.room_id, conn, EVENT_CODE_UPDATE, payload.code)

    def typing(self, conn: ClientConnection, payload: TypingPayload) -> None:
        self.broadcaster.to_room_except(payload.room_id, conn, EVENT_USER_TYPING, payload.user_name)

    def language_change(self, conn: ClientConnection, payload: LanguageChangePayload) -> None:
        # 语言不属于房间状态，只做转发
        self.broadcaster.to_room(payload.room_id, EVENT_LANGUAGE_UPDATE, payload.language)

    def compile_code(self, conn: ClientConnection, payload: CompileCodePayload) -> None:
        """在后台发起远程执行；房间不存在时静默忽略。"""
        if not self.store.exists(payload.room_id):
            logger.debug("compileCode 指向不存在的房间，已忽略 | room=%s", payload.room_id)
            return
        task = asyncio.create_task(self.run_compile(payload))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def run_compile(self, payload: CompileCodePayload) -> None:
        """执行并把结果广播给整个房间（包括发起者）。

        发起者在等待期间断开不会取消执行，结果照常发给房间剩余成员。
        """
        logger.info(
            "开始远程执行 | room=%s | language=%s | version=%s",
            payload.room_id, payload.language, payload.version,
        )
        result = await self.proxy.execute(
            ExecutionRequest(
                source=payload.code,
                language=payload.language,
                version=payload.version,
                stdin=payload.stdin,
            ),
        )
        self.broadcaster.to_room(payload.room_id, EVENT_CODE_RESPONSE, result)

    def leave_room(self, conn: ClientConnection) -> None:
        """显式离开当前房间；未加入时为空操作。"""
        if conn.membership is None:
            logger.debug("leaveRoom 时未加入任何房间 | conn=%s", conn.conn_id)
            return
        self._leave(conn, notify_self=True)

    def disconnect(self, conn: ClientConnection) -> None:
        """连接断开（任何原因）等同于离开当前房间。"""
        if conn.membership is not None:
            self._leave(conn, notify_self=False)

    # ── 后台任务 ──────────────────────────────────────────────────────

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def wait_inflight(self) -> None:
        """等待所有进行中的远程执行完成。"""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def cancel_inflight(self) -> None:
        for task in list(self._inflight):
            task.cancel()

    # ── 内部 ──────────────────────────────────────────────────────────

    def _leave(self, conn: ClientConnection, notify_self: bool) -> None:
        """移除成员、解除绑定，并把新的成员列表广播给房间。

        ``notify_self`` 为真时先广播后解绑，离开者也会收到不含自己的成员列表。
        """
        membership = conn.membership
        if membership is None:
            return

        self.store.remove_member(membership.room_id, membership.user_name)
        members = self.store.list_members(membership.room_id)
        if notify_self:
            self.broadcaster.to_room(membership.room_id, EVENT_USER_JOINED, members)
            self.registry.unbind(conn)
        else:
            self.registry.unbind(conn)
            self.broadcaster.to_room(membership.room_id, EVENT_USER_JOINED, members)
        logger.info(
            "用户离开房间 | room=%s | user=%s | members=%d",
            membership.room_id, membership.user_name, len(members),
        )
