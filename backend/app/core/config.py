# app/core/config.py
# 配置管理模块
#
# 功能说明：
# 1. 使用 Pydantic Settings 从环境变量加载配置
# 2. 支持 .env 文件读取
# 3. 提供类型安全的配置访问
#
# 使用方法：
#   from app.core.config import get_settings
#   settings = get_settings()
#   print(settings.APP_NAME)

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


# backend/ 目录，静态文件默认放在 backend/static 下
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """
    应用配置类

    所有配置项都可以通过环境变量覆盖，环境变量名与属性名相同（大写）
    例如：设置 ENVIRONMENT=development 会在 500 响应中返回错误详情
    """

    model_config = SettingsConfigDict(
        env_file=".env",               # 从 .env 文件读取环境变量
        env_file_encoding="utf-8",     # 文件编码
        case_sensitive=True,           # 环境变量名区分大小写
        extra="ignore",
    )

    # ==================== 应用基础配置 ====================
    APP_NAME: str = "Workflow Decision Relay"
    DEBUG: bool = False

    # 部署环境：只有 development 时才在 500 响应中暴露错误详情
    ENVIRONMENT: Literal["development", "production", "test"] = "production"

    # ==================== 日志配置 ====================
    # 日志级别：DEBUG < INFO < WARNING < ERROR < CRITICAL
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # 日志格式：console（彩色控制台输出）或 json（结构化JSON，适合生产环境）
    LOG_FORMAT: Literal["console", "json"] = "console"

    # ==================== 静态文件配置 ====================
    STATIC_DIR: str = str(BASE_DIR / "static")
    STATIC_URL_PREFIX: str = "/app"
    LOGIN_PAGE: str = "login.html"

    # ==================== Destination 配置 ====================
    # Destination 是一个命名的连接配置（基础 URL + 认证信息）
    # 调用时按名称解析，不在代码中写死
    DESTINATION_NAME: str = "S4HANA_DEV"
    DESTINATION_URL: str = ""
    DESTINATION_USERNAME: str = ""     # 为空时不做 Basic 认证
    DESTINATION_PASSWORD: str = ""

    # ==================== TaskProcessing 服务配置 ====================
    TASK_PROCESSING_PATH: str = "/sap/opu/odata/IWPGW/TASKPROCESSING;v=2"

    # 每次网络调用的超时时间（秒），Token 获取和决策提交各自独立计时
    REQUEST_TIMEOUT: float = 30.0

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    获取配置实例（单例模式）

    使用 @lru_cache 装饰器确保整个应用只创建一个 Settings 实例
    避免重复读取环境变量和 .env 文件
    """
    return Settings()
