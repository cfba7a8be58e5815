# app/destinations/base.py
# Destination 解析器基类
#
# 定义 Destination 数据结构和解析器的标准接口

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx


@dataclass
class Destination:
    """
    命名连接配置

    Attributes:
        name: Destination 名称（如 "S4HANA_DEV"）
        base_url: 目标系统基础 URL
        auth: httpx 认证对象，None 表示不认证
        headers: 每个请求都要带上的附加请求头
    """
    name: str
    base_url: str
    auth: Optional[httpx.Auth] = None
    headers: dict[str, str] = field(default_factory=dict)


class DestinationError(Exception):
    """Destination 解析失败"""


class DestinationNotFoundError(DestinationError):
    """指定名称的 Destination 不存在或未配置"""

    def __init__(self, name: str):
        super().__init__(f"Destination '{name}' is not configured")
        self.name = name


class DestinationResolver(ABC):
    """
    Destination 解析器基类

    示例：
        class VaultDestinationResolver(DestinationResolver):
            def resolve(self, name: str) -> Destination:
                # 从密钥管理服务读取连接信息
                ...
    """

    @abstractmethod
    def resolve(self, name: str) -> Destination:
        """
        按名称解析 Destination

        Raises:
            DestinationNotFoundError: 名称未配置时抛出
        """
        pass
