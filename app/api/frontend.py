"""
app.api.frontend
~~~~~~~~~~~~~~~~

前端单页应用托管：存在的静态文件直接返回，其余 GET 路径一律回落到
``index.html``。``/api`` 与 ``/ws`` 命名空间不参与回落。

该路由必须最后注册，避免吞掉其他接口。
"""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from app.core.settings import settings

router: APIRouter = APIRouter()

_PROJECT_ROOT: Path = Path(__file__).resolve().parents[2]
_RESERVED_PREFIXES: tuple[str, ...] = ("api", "ws")


def resolve_dist_dir() -> Path:
    """解析前端构建目录（相对路径以项目根目录为基准）。"""
    path = Path(settings.FRONTEND_DIST_DIR)
    if not path.is_absolute():
        path = _PROJECT_ROOT / path
    return path.resolve()


def _is_reserved(full_path: str) -> bool:
    head = full_path.split("/", 1)[0]
    return head in _RESERVED_PREFIXES


@router.get("/{full_path:path}", include_in_schema=False)
async def serve_frontend(full_path: str) -> FileResponse:
    if _is_reserved(full_path):
        raise HTTPException(status_code=404, detail="Not Found")

    dist_dir = resolve_dist_dir()
    if full_path:
        candidate = (dist_dir / full_path).resolve()
        if candidate.is_relative_to(dist_dir) and candidate.is_file():
            return FileResponse(candidate)

    index = dist_dir / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="前端资源尚未构建")
    return FileResponse(index)
