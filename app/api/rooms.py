"""
app.api.rooms
~~~~~~~~~~~~~

房间查询 REST 接口（只读）。

路由前缀 ``/api``。查询接口从不创建房间，房间只能通过 WebSocket ``join`` 产生。

端点:
  - ``GET /rooms``           → 获取全部房间摘要
  - ``GET /rooms/{room_id}`` → 获取单个房间摘要
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_collab_system
from app.core.rate_limit import limiter
from app.core.settings import settings
from app.schemas.api_response import ApiResponse
from app.schemas.collab_events import RoomInfoData

router: APIRouter = APIRouter()


@router.get("/rooms", summary="获取房间列表")
@limiter.limit(settings.API_RATE_LIMIT)
async def list_rooms(request: Request) -> ApiResponse[list[RoomInfoData]]:
    """返回当前进程内所有房间（包括暂时无人的房间）。"""
    rooms = get_collab_system(request).list_rooms()
    return ApiResponse.ok(data=rooms)


@router.get("/rooms/{room_id}", summary="获取房间详情", response_model=None)
@limiter.limit(settings.API_RATE_LIMIT)
async def room_info(request: Request, room_id: str) -> ApiResponse[RoomInfoData] | JSONResponse:
    """返回指定房间的成员信息，房间不存在时返回 404。

    Args:
        room_id: 房间标识。
    """
    room = get_collab_system(request).store.get(room_id)
    if room is None:
        return JSONResponse(
            status_code=404,
            content=ApiResponse.fail(msg=f"房间不存在: {room_id}", code=404).model_dump(),
        )
    return ApiResponse.ok(data=room.info())
