"""
app.schemas.collab_events
~~~~~~~~~~~~~~~~~~~~~~~~~

协作编辑 WebSocket 协议的 Pydantic 模型。

每一帧都是 ``{"event": <事件名>, "data": <载荷>}`` 形式的 JSON 文本，
客户端与服务端双向一致。字段名沿用前端的 camelCase，Python 侧使用 snake_case 别名。
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# 客户端 → 服务端
EVENT_JOIN = "join"
EVENT_CODE_CHANGE = "codeChange"
EVENT_LEAVE_ROOM = "leaveRoom"
EVENT_TYPING = "typing"
EVENT_LANGUAGE_CHANGE = "languageChange"
EVENT_COMPILE_CODE = "compileCode"

# 服务端 → 客户端
EVENT_CODE_UPDATE = "codeUpdate"
EVENT_USER_JOINED = "userJoined"
EVENT_USER_TYPING = "userTyping"
EVENT_LANGUAGE_UPDATE = "languageUpdate"
EVENT_CODE_RESPONSE = "codeResponse"

COMPILATION_FAILED_OUTPUT = "Compilation failed."


def compilation_failed() -> dict[str, Any]:
    """远程执行失败时广播的固定载荷（每次返回新对象）。"""
    return {"run": {"output": COMPILATION_FAILED_OUTPUT}}


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Envelope(BaseModel):
    """一帧 WebSocket 消息。"""

    event: str = Field(..., min_length=1, description="事件名")
    data: Any = Field(default=None, description="事件载荷")


class JoinPayload(_CamelModel):
    room_id: str = Field(..., alias="roomId")
    user_name: str = Field(..., alias="userName")


class CodeChangePayload(_CamelModel):
    room_id: str = Field(..., alias="roomId")
    code: str


class TypingPayload(_CamelModel):
    room_id: str = Field(..., alias="roomId")
    user_name: str = Field(..., alias="userName")


class LanguageChangePayload(_CamelModel):
    room_id: str = Field(..., alias="roomId")
    language: str


class CompileCodePayload(_CamelModel):
    """``compileCode`` 载荷，``input`` 为传给程序的 stdin。"""

    room_id: str = Field(..., alias="roomId")
    code: str
    language: str
    version: str
    stdin: str = Field(default="", alias="input")


class ExecutionRequest(BaseModel):
    """一次性的远程执行请求。"""

    source: str
    language: str
    version: str
    stdin: str = ""

    def to_wire(self) -> dict[str, Any]:
        """转换为远程执行服务的请求体。"""
        return {
            "language": self.language,
            "version": self.version,
            "files": [{"content": self.source}],
            "stdin": self.stdin,
        }


class RoomInfoData(BaseModel):
    """房间摘要信息。"""

    room_id: str = Field(..., description="房间唯一标识")
    members: list[str] = Field(..., description="当前成员（按加入顺序）")
    member_count: int = Field(..., description="当前成员数")
