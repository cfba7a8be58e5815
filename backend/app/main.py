# app/main.py
# FastAPI 应用入口
#
# 功能说明：
# 1. 创建 FastAPI 应用实例（create_app 工厂函数）
# 2. 配置中间件（CORS、请求日志）
# 3. 挂载静态文件目录，根路径重定向到登录页
# 4. 注册路由，注入 DecisionRelay 和服务注册中心
# 5. 管理应用生命周期（启动完成后检查可选服务）
#
# 启动命令：
#   cd backend
#   uvicorn app.main:app --reload --host 0.0.0.0 --port 8000
#
# API 文档：
#   - Swagger UI: http://localhost:8000/docs

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import health
from app.api import workflow_decision
from app.core.config import Settings, get_settings
from app.core.cors import CORS_HEADERS, PermissiveCORSMiddleware
from app.core.logging import RequestLoggingMiddleware, get_logger, setup_logging
from app.core.registry import MODEL_PROVIDER, ServiceRegistry
from app.services.workflow_decision import DecisionRelay

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理

    - 启动完成后：检查可选的模型元数据提供者是否已注册
    - 关闭时：只记录日志，没有需要释放的连接
    """
    settings: Settings = app.state.settings
    registry: ServiceRegistry = app.state.registry

    logger.info(f"{settings.APP_NAME} 启动完成 (environment={settings.ENVIRONMENT})")

    if registry.has(MODEL_PROVIDER):
        logger.info("Model Provider Service is available")
    else:
        logger.debug("未注册 Model Provider Service")

    yield

    logger.info("应用已关闭")


def _register_exception_handlers(app: FastAPI, settings: Settings):
    """注册全局异常处理，异常响应也要带上 CORS 头"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=CORS_HEADERS,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"detail": exc.errors()},
            headers=CORS_HEADERS,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """处理未捕获的异常，只有开发环境才返回错误详情"""
        logger.exception(f"Server Error: {type(exc).__name__}: {str(exc)}")

        error = {"message": "Internal Server Error"}
        if settings.is_development:
            error["details"] = str(exc)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": error},
            headers=CORS_HEADERS,
        )


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ServiceRegistry] = None,
    relay: Optional[DecisionRelay] = None,
) -> FastAPI:
    """
    创建应用

    Args:
        settings: 配置，不传则从环境变量加载
        registry: 服务注册中心，不传则创建空的注册中心
        relay: 决策转发器，不传则按配置构建

    Returns:
        FastAPI: 应用实例
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="工作流审批决策转发服务",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.DEBUG,
    )

    # 应用上下文：替代进程级全局变量
    app.state.settings = settings
    app.state.registry = registry or ServiceRegistry()
    app.state.decision_relay = relay or DecisionRelay.from_settings(settings)

    # ==================== 中间件配置 ====================
    # 后添加的中间件在外层：CORS 先处理请求，OPTIONS 预检不会进入日志
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(PermissiveCORSMiddleware)

    _register_exception_handlers(app, settings)

    # ==================== 静态文件 ====================
    prefix = settings.STATIC_URL_PREFIX.rstrip("/")
    app.mount(prefix, StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")

    login_url = f"{prefix}/{settings.LOGIN_PAGE}"

    @app.get("/", include_in_schema=False)
    async def root():
        """根路径重定向到登录页"""
        return RedirectResponse(url=login_url, status_code=status.HTTP_302_FOUND)

    # ==================== 注册路由 ====================
    # - GET /health
    app.include_router(health.router)

    # - POST /odata/v4/approval/processWorkflowDecision
    app.include_router(workflow_decision.router)

    return app


app = create_app()
