# app/core/registry.py
# 服务注册中心
#
# 保存应用启动时注册的可选协作服务（例如模型元数据提供者）。
# 注册中心在 create_app() 中创建并挂到 app.state 上，
# 需要的地方通过 request.app.state.registry 获取，不使用进程级全局变量。

from typing import Any, Optional

from app.core.logging import get_logger

logger = get_logger(__name__)


# 模型元数据提供者的注册名
MODEL_PROVIDER = "model_provider"


class ServiceRegistry:
    """
    服务注册中心

    使用方法：
        registry = ServiceRegistry()
        registry.register(MODEL_PROVIDER, provider)

        if registry.has(MODEL_PROVIDER):
            provider = registry.get(MODEL_PROVIDER)
    """

    def __init__(self):
        self._services: dict[str, Any] = {}

    def register(self, name: str, service: Any):
        """注册服务，同名服务会被覆盖"""
        if name in self._services:
            logger.warning(f"[ServiceRegistry] 服务已存在，将被覆盖: {name}")

        self._services[name] = service
        logger.info(f"[ServiceRegistry] 注册服务: {name}")

    def unregister(self, name: str):
        """取消注册服务"""
        if self._services.pop(name, None) is not None:
            logger.info(f"[ServiceRegistry] 取消注册服务: {name}")

    def get(self, name: str) -> Optional[Any]:
        return self._services.get(name)

    def has(self, name: str) -> bool:
        return name in self._services

    def list_services(self) -> list[str]:
        """列出所有已注册的服务名称"""
        return list(self._services.keys())
