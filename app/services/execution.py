"""
app.services.execution
~~~~~~~~~~~~~~~~~~~~~~

远程代码执行代理 —— 把文档快照发给外部执行服务，原样返回结果。

任何失败（网络错误、超时、非 2xx、响应不是 JSON）都在这里被吞掉并转换为
固定的失败载荷，调用方永远拿到一个可以直接广播的值。只尝试一次，不重试。
"""
from __future__ import annotations

from typing import Any

import httpx

from app.core.logging import get_logger
from app.schemas.collab_events import ExecutionRequest, compilation_failed

logger = get_logger(__name__)


class ExecutionProxy:
    """远程执行服务客户端。

    Attributes:
        endpoint: 执行服务 URL。
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def execute(self, request: ExecutionRequest) -> Any:
        """执行一次远程编译/运行。

        Args:
            request: 源码、语言、版本与 stdin。

        Returns:
            成功时为执行服务的响应体（不做解析），失败时为
            ``{"run": {"output": "Compilation failed."}}``。
        """
        try:
            response = await self._client.post(self.endpoint, json=request.to_wire())
            response.raise_for_status()
            return response.json()
        except Exception as e:
            logger.error(
                "远程执行失败 | language=%s | version=%s | %s",
                request.language, request.version, e, exc_info=True,
            )
            return compilation_failed()

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接池。"""
        await self._client.aclose()
