"""
app.core.rate_limit
~~~~~~~~~~~~~~~~~~~

REST 接口与 WebSocket 事件的限流配置。
"""
from __future__ import annotations

import time

from slowapi import Limiter
from slowapi.util import get_remote_address

# --------- HTTP 接口限流器 ---------
# 基于客户端 IP 地址进行限流
limiter = Limiter(key_func=get_remote_address)


# --------- WebSocket 限流器 ---------
class WebSocketRateLimiter:
    """基于内存的简单 WebSocket 事件限流器。

    记录每个连接上一次被放行的时间，间隔不足 ``interval_seconds`` 的请求被拒绝。
    目前只用于 ``compileCode``，需通过配置显式开启；``interval_seconds <= 0`` 时总是放行。
    """

    def __init__(self, interval_seconds: float = 0.0) -> None:
        self.interval_seconds = interval_seconds
        self._last_allowed: dict[str, float] = {}

    def is_allowed(self, client_id: str) -> bool:
        """检查客户端是否允许发送。

        Args:
            client_id: 连接标识（``ClientConnection.conn_id``）。

        Returns:
            是否放行。放行时同时刷新上次放行时间。
        """
        now = time.monotonic()
        last_time = self._last_allowed.get(client_id)

        if last_time is None or now - last_time >= self.interval_seconds:
            self._last_allowed[client_id] = now
            return True
        return False

    def remove_client(self, client_id: str) -> None:
        """清理断开连接的客户端记录。"""
        self._last_allowed.pop(client_id, None)
