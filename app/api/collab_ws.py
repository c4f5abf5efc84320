"""
app.api.collab_ws
~~~~~~~~~~~~~~~~~

协作编辑 WebSocket 接口。

提供 ``/ws/collab`` 端点。每帧为 ``{"event": ..., "data": ...}`` 形式的 JSON（文本帧或 UTF-8 二进制帧），
客户端通过 ``join`` 事件进入房间，同一连接同一时间只属于一个房间。

每个连接由三个协程组成:
  - 接收协程: 读帧（文本或二进制）、解析、可选限流，放入入站队列
  - 处理协程: 唯一的入站队列消费者，按到达顺序逐条交给 ``SessionHandler``
  - 写协程:   把连接发件箱中的消息写回客户端
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.api.deps import get_collab_system
from app.core.logging import get_logger, request_id_ctx_var
from app.schemas.collab_events import EVENT_COMPILE_CODE, CompileCodePayload, Envelope
from app.services.collab_system import CollabSystem
from app.services.connection import ClientConnection

logger = get_logger(__name__)

router: APIRouter = APIRouter()


def _parse_frame(message: dict[str, Any]) -> Envelope | None:
    """把文本帧或二进制帧解析为 ``Envelope``，无法解析时返回 ``None``。"""
    raw = message.get("text")
    if raw is None:
        raw = message.get("bytes")
    if raw is None:
        return None
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError:
        return None


def _compile_throttled(system: CollabSystem, conn: ClientConnection, envelope: Envelope) -> bool:
    """合法的 ``compileCode`` 是否超过连接级限流。

    限流默认关闭（间隔为 0）。载荷不合法的事件不占用限流额度，交给处理器丢弃。
    """
    if envelope.event != EVENT_COMPILE_CODE or system.compile_limiter.interval_seconds <= 0:
        return False
    try:
        CompileCodePayload.model_validate(envelope.data)
    except ValidationError:
        return False
    return not system.compile_limiter.is_allowed(conn.conn_id)


@router.websocket("/ws/collab")
async def websocket_collab_endpoint(websocket: WebSocket) -> None:
    """协作编辑 WebSocket 端点。

    连接因任何原因结束（客户端关闭、网络中断、异常）时，都按隐式
    ``leaveRoom`` 处理，并把新的成员列表广播给原房间。

    Args:
        websocket: FastAPI WebSocket 连接对象。
    """
    system = get_collab_system(websocket)
    await websocket.accept()
    conn = system.registry.register(websocket)
    token = request_id_ctx_var.set(conn.conn_id)
    logger.info("客户端已连接 | 在线: %d", len(system.registry))

    # 入站队列：接收与处理解耦，处理协程是唯一消费者
    inbox: asyncio.Queue[Envelope | None] = asyncio.Queue()

    async def receive_loop() -> None:
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

                envelope = _parse_frame(message)
                if envelope is None:
                    logger.warning("无法解析的消息帧，已忽略")
                    continue
                if _compile_throttled(system, conn, envelope):
                    logger.warning("compileCode 过于频繁，已丢弃")
                    continue
                inbox.put_nowait(envelope)
        except WebSocketDisconnect:
            pass  # 正常断开
        except Exception as e:
            logger.error("WebSocket 接收异常: %s", e, exc_info=True)
        finally:
            inbox.put_nowait(None)  # 通知处理协程退出

    async def process_loop() -> None:
        while True:
            envelope = await inbox.get()
            if envelope is None:
                break
            try:
                system.handler.dispatch(conn, envelope.event, envelope.data)
            except Exception as e:
                # 单个事件出错不能拖垮连接
                logger.error("事件处理异常 | event=%s | %s", envelope.event, e, exc_info=True)

    writer = asyncio.create_task(conn.writer_loop())
    try:
        await asyncio.gather(receive_loop(), process_loop())
    finally:
        system.handler.disconnect(conn)
        system.registry.unregister(conn)
        system.compile_limiter.remove_client(conn.conn_id)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
        logger.info("客户端已断开 | 在线: %d", len(system.registry))
        request_id_ctx_var.reset(token)
