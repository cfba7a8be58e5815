# tests/conftest.py
# Pytest 配置文件
#
# 功能：
# 1. 将 backend 目录加入 Python 路径
# 2. 提供 MockTransport 形式的假 S/4HANA 系统
# 3. 提供测试用 Settings、DecisionRelay 和 API 客户端

import os
import sys
from typing import Callable, Optional

import httpx
import pytest

# 将项目根目录添加到 Python 路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import Settings
from app.destinations import Destination, StaticDestinationResolver
from app.services.workflow_decision import DecisionRelay


BASE_URL = "https://s4.example.com"
SERVICE_PATH = "/sap/opu/odata/IWPGW/TASKPROCESSING;v=2"


# ==================== 假 S/4HANA 系统 ====================

class FakeTaskProcessing:
    """
    用 httpx.MockTransport 模拟 TaskProcessing 服务

    - token_status / decision_status: 两个阶段返回的状态码
    - token: 返回的 CSRF Token，None 表示不返回
    - token_error / decision_error: 需要抛出的传输层异常工厂
    - requests: 收到的所有请求，按顺序记录
    """

    def __init__(self):
        self.token_status = 200
        self.token = "token-123"
        self.cookies = ["SAP_SESSIONID_DEV_100=abc; path=/; secure", "sap-usercontext=sap-client=100; path=/"]
        self.decision_status = 200
        self.decision_body: Optional[dict] = {"d": {"InstanceID": "000001234567", "Status": "COMPLETED"}}
        self.token_error: Optional[Callable[[httpx.Request], Exception]] = None
        self.decision_error: Optional[Callable[[httpx.Request], Exception]] = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "GET":
            if self.token_error:
                raise self.token_error(request)
            headers = [("set-cookie", cookie) for cookie in self.cookies]
            if self.token:
                headers.append(("x-csrf-token", self.token))
            return httpx.Response(self.token_status, headers=headers)

        if self.decision_error:
            raise self.decision_error(request)
        if self.decision_body is None:
            return httpx.Response(self.decision_status)
        return httpx.Response(self.decision_status, json=self.decision_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# ==================== Fixtures ====================

@pytest.fixture
def fake_s4():
    return FakeTaskProcessing()


@pytest.fixture
def resolver():
    return StaticDestinationResolver({
        "S4HANA_DEV": Destination(
            name="S4HANA_DEV",
            base_url=BASE_URL,
            auth=httpx.BasicAuth("workflow_user", "secret"),
        ),
    })


@pytest.fixture
def relay(fake_s4, resolver):
    return DecisionRelay(
        resolver=resolver,
        destination_name="S4HANA_DEV",
        service_path=SERVICE_PATH,
        timeout=30.0,
        transport=fake_s4.transport,
    )


@pytest.fixture
def settings(tmp_path):
    """测试用配置，静态目录指向临时目录"""
    (tmp_path / "login.html").write_text("<html><body>login</body></html>", encoding="utf-8")
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        STATIC_DIR=str(tmp_path),
        DESTINATION_URL=BASE_URL,
    )


@pytest.fixture
def make_client(settings, relay):
    """创建测试用 API 客户端的工厂函数"""
    from fastapi.testclient import TestClient
    from app.main import create_app

    clients = []

    def _make(app_settings: Optional[Settings] = None, registry=None, app_relay=None):
        app = create_app(
            settings=app_settings or settings,
            registry=registry,
            relay=app_relay or relay,
        )
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(make_client):
    return make_client()
