"""
app.services.keepalive
~~~~~~~~~~~~~~~~~~~~~~

开发环境下的保活自 ping：定时 GET 一次服务自身地址，失败只记日志。
"""
from __future__ import annotations

import asyncio

import httpx

from app.core.logging import get_logger

logger = get_logger(__name__)


async def ping_once(client: httpx.AsyncClient, url: str) -> bool:
    """发送一次保活请求，返回是否成功。"""
    try:
        await client.get(url)
        return True
    except Exception as e:
        logger.error("保活 ping 失败 | url=%s | %s", url, e)
        return False


async def keepalive_loop(
    url: str,
    interval_seconds: float,
    client: httpx.AsyncClient | None = None,
) -> None:
    """每隔 ``interval_seconds`` 秒 ping 一次 ``url``，直到任务被取消。"""
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=10.0)
    logger.info("保活任务已启动 | url=%s | interval=%.0fs", url, interval_seconds)
    try:
        while True:
            await asyncio.sleep(interval_seconds)
            await ping_once(http, url)
    finally:
        if owns_client:
            await http.aclose()
