"""
app.core.settings
~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Code Collab Relay", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=5000, description="服务监听端口")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")
    FRONTEND_DIST_DIR: str = Field(
        default="frontend/dist",
        description="前端构建产物目录（相对项目根目录或绝对路径）",
    )

    # ── 协作房间 ──────────────────────────────────────────────────────
    DEFAULT_DOCUMENT: str = Field(
        default="// start code here",
        description="新房间的初始文档内容",
    )
    ROOM_IDLE_TTL_SECONDS: float = Field(
        default=3600.0,
        description="空房间保留时长（秒），超时后被回收；<= 0 表示永不回收",
    )
    ROOM_SWEEP_INTERVAL_SECONDS: float = Field(
        default=60.0,
        description="空房间回收任务的扫描间隔（秒）",
    )

    # ── 代码执行 ──────────────────────────────────────────────────────
    EXECUTION_API_URL: str = Field(
        default="https://emkc.org/api/v2/piston/execute",
        description="远程代码执行服务地址",
    )
    EXECUTION_TIMEOUT: float = Field(default=15.0, description="远程执行请求超时（秒）")

    # ── 保活 ──────────────────────────────────────────────────────────
    KEEPALIVE_URL: str | None = Field(
        default=None,
        description="保活自 ping 地址，留空时使用 http://localhost:{PORT}",
    )
    KEEPALIVE_INTERVAL_SECONDS: float = Field(default=30.0, description="保活 ping 间隔（秒）")

    # ── 限流 ──────────────────────────────────────────────────────────
    WS_COMPILE_RATE_LIMIT_INTERVAL: float = Field(
        default=0.0,
        description="同一连接两次 compileCode 之间的最小间隔（秒），<= 0 表示不限流",
    )
    API_RATE_LIMIT: str = Field(default="10/second", description="REST 接口限流规则")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 环境差异化行为 ────────────────────────────────────────────────

    @property
    def debug(self) -> bool:
        """是否开启 debug 模式。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """是否开启热重载。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def keepalive_enabled(self) -> bool:
        """是否启动保活自 ping。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def keepalive_url(self) -> str:
        """保活 ping 的目标地址。"""
        return self.KEEPALIVE_URL or f"http://localhost:{self.PORT}"

    @property
    def allow_cors_all_origins(self) -> bool:
        """是否允许所有 CORS 来源。非 prod 环境允许，方便本地调试。"""
        return not self.is_prod


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
