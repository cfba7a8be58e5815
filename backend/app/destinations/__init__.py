# app/destinations/__init__.py
# Destination 解析模块
#
# 功能说明：
# Destination 是一个命名的外部连接配置（基础 URL + 认证方式），
# 业务代码只持有名称，调用时再解析成具体的连接信息。
#
# 提供的实现：
# - DestinationResolver: 解析器接口
# - StaticDestinationResolver: 基于内存映射（可由配置构建）

from app.destinations.base import (
    Destination,
    DestinationError,
    DestinationNotFoundError,
    DestinationResolver,
)
from app.destinations.static import StaticDestinationResolver

__all__ = [
    "Destination",
    "DestinationError",
    "DestinationNotFoundError",
    "DestinationResolver",
    "StaticDestinationResolver",
]
