# app/destinations/static.py
# 基于内存映射的 Destination 解析器

from typing import Optional

import httpx

from app.core.config import Settings
from app.core.logging import get_logger
from app.destinations.base import Destination, DestinationNotFoundError, DestinationResolver

logger = get_logger(__name__)


class StaticDestinationResolver(DestinationResolver):
    """
    静态 Destination 解析器

    使用方法：
        resolver = StaticDestinationResolver.from_settings(settings)
        destination = resolver.resolve("S4HANA_DEV")
    """

    def __init__(self, destinations: Optional[dict[str, Destination]] = None):
        self._destinations: dict[str, Destination] = dict(destinations or {})

    @classmethod
    def from_settings(cls, settings: Settings) -> "StaticDestinationResolver":
        """
        从配置构建解析器

        DESTINATION_URL 为空时不注册任何 Destination，
        解析时会得到 DestinationNotFoundError。
        """
        if not settings.DESTINATION_URL:
            logger.warning(
                f"[Destination] 未配置 DESTINATION_URL，Destination "
                f"'{settings.DESTINATION_NAME}' 不可用"
            )
            return cls()

        auth = None
        if settings.DESTINATION_USERNAME:
            auth = httpx.BasicAuth(settings.DESTINATION_USERNAME, settings.DESTINATION_PASSWORD)

        destination = Destination(
            name=settings.DESTINATION_NAME,
            base_url=settings.DESTINATION_URL.rstrip("/"),
            auth=auth,
        )
        return cls({destination.name: destination})

    def add(self, destination: Destination):
        self._destinations[destination.name] = destination

    def resolve(self, name: str) -> Destination:
        destination = self._destinations.get(name)
        if destination is None:
            raise DestinationNotFoundError(name)
        return destination
