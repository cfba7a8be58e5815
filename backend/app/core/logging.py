# app/core/logging.py
# 日志配置模块
#
# 功能说明：
# 1. 统一管理应用日志输出
# 2. 支持两种格式：彩色控制台（开发）和 JSON（生产）
# 3. 自动记录请求信息（中间件）
#
# 使用方法：
#   from app.core.logging import get_logger
#   logger = get_logger(__name__)
#   logger.info("这是一条日志")

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import Settings


# ==================== 日志格式 ====================

# 级别 -> ANSI 颜色
LEVEL_COLORS = {
    "DEBUG": "\033[34m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"
_DIM = "\033[90m"


class ConsoleFormatter(logging.Formatter):
    """
    控制台格式化器（开发环境使用）

    输出格式：
    2026-01-30 12:00:00 | INFO     | app.services.workflow_decision:88 - ...
    """

    def __init__(self, colored: bool = True):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.colored = colored

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        location = f"{record.name}:{record.lineno}"
        if self.colored:
            level = f"{LEVEL_COLORS.get(record.levelname, _RESET)}{level}{_RESET}"
            location = f"{_DIM}{location}{_RESET}"

        line = f"{self.formatTime(record, self.datefmt)} | {level} | {location} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JSONFormatter(logging.Formatter):
    """JSON 格式化器（生产环境使用），每行一个对象"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


# ==================== Logger 工厂函数 ====================

def setup_logging(settings: Settings) -> None:
    """
    初始化日志系统

    在创建应用时调用一次，根据配置设置日志级别和格式
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.LOG_LEVEL)

    # 只移除之前由本函数添加的 handler（避免重复添加），保留其他 handler
    for handler in list(root_logger.handlers):
        if getattr(handler, "_app_console", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler._app_console = True
    console_handler.setLevel(settings.LOG_LEVEL)

    if settings.LOG_FORMAT == "json":
        formatter = JSONFormatter()
    else:
        formatter = ConsoleFormatter(colored=sys.stdout.isatty())

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    # HTTP 客户端日志只在 DEBUG 模式下展开
    http_level = logging.DEBUG if settings.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    获取 logger 实例

    每个模块应该使用自己的 logger，传入模块名（通常是 __name__）
    """
    return logging.getLogger(name)


# ==================== 请求日志中间件 ====================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    HTTP 请求日志中间件

    请求进入时先记录时间戳、方法和路径，再交给下一个处理器；
    处理完成后记录状态码和耗时。

    输出示例：
    INFO | 2026-01-30T12:00:00.000Z - POST /odata/v4/approval/processWorkflowDecision
    INFO | POST /odata/v4/approval/processWorkflowDecision -> 200 (45ms)
    """

    def __init__(self, app, logger: Optional[logging.Logger] = None):
        super().__init__(app)
        self.logger = logger or get_logger("app.request")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        method = request.method
        path = request.url.path
        query = str(request.url.query) if request.url.query else ""
        target = f"{path}?{query}" if query else path

        arrived_at = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        self.logger.info(f"{arrived_at.replace('+00:00', 'Z')} - {method} {target}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration = (time.time() - start_time) * 1000
            self.logger.error(
                f"{method} {target} -> 500 ERROR ({duration:.0f}ms) - {str(e)}"
            )
            raise

        duration = (time.time() - start_time) * 1000
        status_code = response.status_code
        log_message = f"{method} {target} -> {status_code} ({duration:.0f}ms)"

        # 200-399 用 INFO，400-499 用 WARNING，500+ 用 ERROR
        if status_code >= 500:
            self.logger.error(log_message)
        elif status_code >= 400:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        return response
