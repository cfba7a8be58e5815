# app/services/workflow_decision.py
# 工作流决策转发服务
#
# 功能说明：
# 1. 校验决策请求（参数缺失、决策代码非法）
# 2. 两阶段调用 TaskProcessing OData 服务：
#    - 阶段一：GET 服务根路径获取 CSRF Token 和会话 Cookie
#    - 阶段二：带着 Token 和 Cookie POST Decision 函数导入
# 3. 将 HTTP 状态码和异常统一映射为 DecisionResult，不向调用方抛出异常
#
# 使用方法：
#   from app.services.workflow_decision import DecisionRelay
#
#   relay = DecisionRelay.from_settings(settings)
#   result = await relay.process_workflow_decision("000001234567", "0001", "OK")
#
# 注意：
#   - 每次调用都重新获取 Token，不缓存、不复用
#   - 不做自动重试，超时或失败直接返回给调用方

import asyncio
import errno
import json
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.core.config import Settings
from app.core.logging import get_logger
from app.destinations import Destination, DestinationResolver, StaticDestinationResolver
from app.schemas.workflow_decision import DecisionCode, DecisionResult, ErrorCode

logger = get_logger(__name__)


DEFAULT_SERVICE_PATH = "/sap/opu/odata/IWPGW/TASKPROCESSING;v=2"
DEFAULT_DESTINATION = "S4HANA_DEV"
DEFAULT_TIMEOUT = 30.0

DEFAULT_COMMENTS = {
    DecisionCode.APPROVE: "Approved via BTP Workflow System",
    DecisionCode.REJECT: "Rejected via BTP Workflow System",
}

SUCCESS_MESSAGES = {
    DecisionCode.APPROVE: "Workflow task has been approved successfully",
    DecisionCode.REJECT: "Workflow task has been rejected successfully",
}

# 与 JavaScript encodeURIComponent 保持一致的不编码字符
_URI_COMPONENT_SAFE = "-_.!~*'()"


# ==================== 阶段间状态与异常 ====================

@dataclass(frozen=True)
class TokenAcquired:
    """
    阶段一的结果

    Attributes:
        token: CSRF Token
        cookies: 会话 Cookie，格式 "name=value; name2=value2"，可能为空
    """
    token: str
    cookies: str = ""


class TokenFetchError(Exception):
    """CSRF Token 获取失败"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecisionSubmissionError(Exception):
    """决策提交失败（非 2xx）"""

    def __init__(self, status_code: int, body: Any = None):
        super().__init__(f"Decision request failed with status {status_code}")
        self.status_code = status_code
        self.body = body


# ==================== 错误分类 ====================

_TOKEN_FETCH_ERRORS = {
    401: (
        ErrorCode.DESTINATION_AUTH_FAILED,
        "Destination authentication failed. Please check destination configuration.",
    ),
    404: (
        ErrorCode.SERVICE_NOT_FOUND,
        "TaskProcessing service not found. Please check if the service is activated in S/4HANA.",
    ),
    403: (
        ErrorCode.ACCESS_DENIED,
        "Access denied. Destination may not have sufficient authorization.",
    ),
}

_SUBMISSION_ERRORS = {
    400: (
        ErrorCode.INVALID_PARAMETERS,
        "Invalid workflow instance or decision parameters. "
        "The workflow may have already been processed.",
    ),
    404: (
        ErrorCode.INSTANCE_NOT_FOUND,
        "Workflow instance not found or no longer available for processing.",
    ),
    403: (
        ErrorCode.NOT_AUTHORIZED,
        "You are not authorized to process this workflow instance.",
    ),
    409: (
        ErrorCode.ALREADY_PROCESSED,
        "Workflow instance has already been processed by another user.",
    ),
}

_UNEXPECTED_STATUS_ERRORS = {
    401: (ErrorCode.DESTINATION_AUTH_FAILED, "Destination authentication failed"),
    404: (ErrorCode.NOT_FOUND, "Workflow service or instance not found"),
    403: (ErrorCode.ACCESS_DENIED, "Access denied for this workflow instance"),
}


def classify_token_fetch_error(status_code: Optional[int]) -> tuple[ErrorCode, str]:
    """Token 获取阶段：按状态码映射错误代码和提示"""
    if status_code in _TOKEN_FETCH_ERRORS:
        return _TOKEN_FETCH_ERRORS[status_code]
    if status_code is not None and status_code >= 500:
        return ErrorCode.SYSTEM_ERROR, "S/4HANA system error. Please try again later."
    return ErrorCode.CSRF_ERROR, "Failed to connect to S/4HANA system"


def classify_submission_error(status_code: Optional[int]) -> tuple[ErrorCode, str]:
    """决策提交阶段：按状态码映射错误代码和提示"""
    if status_code in _SUBMISSION_ERRORS:
        return _SUBMISSION_ERRORS[status_code]
    if status_code is not None and status_code >= 500:
        return (
            ErrorCode.SYSTEM_ERROR,
            "S/4HANA system error during workflow processing. Please try again later.",
        )
    return ErrorCode.DECISION_ERROR, "Failed to process workflow decision"


def _status_of(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    if isinstance(response, httpx.Response):
        return response.status_code
    status_code = getattr(exc, "status_code", None)
    return status_code if isinstance(status_code, int) else None


def _is_connection_refused(exc: BaseException) -> bool:
    if not isinstance(exc, httpx.ConnectError):
        return False

    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, ConnectionRefusedError):
            return True
        if getattr(current, "errno", None) == errno.ECONNREFUSED:
            return True
        current = current.__cause__ or current.__context__

    return "refused" in str(exc).lower()


def classify_unexpected_error(exc: BaseException) -> tuple[ErrorCode, str, Optional[int]]:
    """
    兜底分类：传输层异常和其他未预料的异常

    Returns:
        (错误代码, 提示, 状态码)；状态码未知时为 None
    """
    status_code = _status_of(exc)
    if status_code in _UNEXPECTED_STATUS_ERRORS:
        code, message = _UNEXPECTED_STATUS_ERRORS[status_code]
        return code, message, status_code

    if _is_connection_refused(exc):
        return (
            ErrorCode.CONNECTION_REFUSED,
            "Cannot connect to S/4HANA system. Please check system availability.",
            status_code,
        )

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return (
            ErrorCode.TIMEOUT,
            "Request timeout. S/4HANA system may be slow or unavailable.",
            status_code,
        )

    return (
        ErrorCode.UNEXPECTED_ERROR,
        "An unexpected error occurred while processing the workflow decision",
        status_code,
    )


# ==================== 请求构建 ====================

def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_decision_path(service_path: str, instance_id: str, decision: str, comments: str) -> str:
    """
    构建 Decision 函数导入路径

    示例：
        /sap/opu/odata/IWPGW/TASKPROCESSING;v=2/Decision?InstanceID='000001'&DecisionKey='0001'&Comments='OK'
    """
    return (
        f"{service_path}/Decision"
        f"?InstanceID='{instance_id}'"
        f"&DecisionKey='{decision}'"
        f"&Comments='{encode_uri_component(comments)}'"
    )


def _collect_cookies(response: httpx.Response) -> str:
    """把所有 Set-Cookie 头转换为请求用的 Cookie 头（只保留 name=value）"""
    pairs = []
    for header in response.headers.get_list("set-cookie"):
        pair = header.split(";", 1)[0].strip()
        if pair:
            pairs.append(pair)
    return "; ".join(pairs)


def _parse_body(response: httpx.Response) -> Any:
    """解析响应体：JSON 优先，空响应返回 None"""
    if not response.content:
        return None

    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except json.JSONDecodeError:
            return response.text
    return response.text


# ==================== 决策转发 ====================

class DecisionRelay:
    """
    工作流决策转发器

    无状态：每次调用独立解析 Destination、创建 HTTP 客户端、获取 Token，
    多个调用可以并发执行。
    """

    def __init__(
        self,
        resolver: DestinationResolver,
        destination_name: str = DEFAULT_DESTINATION,
        service_path: str = DEFAULT_SERVICE_PATH,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            resolver: Destination 解析器
            destination_name: 目标系统 Destination 名称
            service_path: TaskProcessing 服务路径
            timeout: 单次网络调用超时（秒）
            transport: 自定义 httpx transport（测试时注入 MockTransport）
        """
        self.resolver = resolver
        self.destination_name = destination_name
        self.service_path = service_path.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        resolver: Optional[DestinationResolver] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "DecisionRelay":
        return cls(
            resolver=resolver or StaticDestinationResolver.from_settings(settings),
            destination_name=settings.DESTINATION_NAME,
            service_path=settings.TASK_PROCESSING_PATH,
            timeout=settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    def _client(self, destination: Destination) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=destination.base_url,
            auth=destination.auth,
            headers=destination.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _within_deadline(self, request_coro):
        """
        给单次调用加整体截止时间

        httpx 的 timeout 分别作用于 connect/read/write/pool，
        服务端持续缓慢返回数据时单次调用可能超过 timeout，这里再整体限制一次。
        超时抛出 asyncio.TimeoutError，由兜底分类映射为 TIMEOUT。
        """
        return await asyncio.wait_for(request_coro, timeout=self.timeout)

    async def process_workflow_decision(
        self,
        instance_id: Optional[str],
        decision: Optional[str],
        comments: Optional[str] = None,
    ) -> DecisionResult:
        """
        处理工作流决策

        Args:
            instance_id: 工作流实例 ID
            decision: 决策代码（0001 通过 / 0002 拒绝）
            comments: 审批意见，不填则使用默认文本

        Returns:
            DecisionResult: 成功或失败都以结果返回，不抛出异常
        """
        try:
            invalid = self._validate(instance_id, decision)
            if invalid is not None:
                return invalid

            code = DecisionCode(decision)
            destination = self.resolver.resolve(self.destination_name)

            async with self._client(destination) as client:
                # ---- 阶段一：获取 CSRF Token ----
                try:
                    token = await self.fetch_csrf_token(client)
                except TokenFetchError as e:
                    error_code, message = classify_token_fetch_error(e.status_code)
                    logger.error(
                        f"[DecisionRelay] CSRF Token 获取失败: status={e.status_code}, "
                        f"url={self.service_path}, error={e}"
                    )
                    return DecisionResult(
                        success=False,
                        message=message,
                        instance_id=instance_id,
                        decision=decision,
                        error=error_code,
                        http_status=e.status_code,
                    )

                # ---- 阶段二：提交决策 ----
                final_comments = comments or DEFAULT_COMMENTS[code]
                try:
                    response = await self.submit_decision(
                        client, token, instance_id, code, final_comments
                    )
                except DecisionSubmissionError as e:
                    error_code, message = classify_submission_error(e.status_code)
                    logger.error(
                        f"[DecisionRelay] 决策提交失败: status={e.status_code}, "
                        f"instance={instance_id}, data={e.body}"
                    )
                    return DecisionResult(
                        success=False,
                        message=message,
                        instance_id=instance_id,
                        decision=decision,
                        error=error_code,
                        http_status=e.status_code,
                        details=e.body,
                    )

            body = _parse_body(response)
            if body is not None:
                logger.debug(f"[DecisionRelay] 决策响应数据: {body}")

            logger.info(f"[DecisionRelay] 工作流 {instance_id} 已{'通过' if code is DecisionCode.APPROVE else '拒绝'}")
            return DecisionResult(
                success=True,
                message=SUCCESS_MESSAGES[code],
                instance_id=instance_id,
                decision=decision,
                decision_text=code.text,
                comments=final_comments,
                http_status=response.status_code,
            )

        except Exception as e:
            error_code, message, status_code = classify_unexpected_error(e)
            logger.error(
                f"[DecisionRelay] 处理决策时发生异常: {type(e).__name__}: {e} "
                f"-> {error_code.value}"
            )
            return DecisionResult(
                success=False,
                message=message,
                instance_id=instance_id or "N/A",
                decision=decision or "N/A",
                error=error_code,
                http_status=status_code,
                details=str(e) or type(e).__name__,
            )

    def _validate(
        self,
        instance_id: Optional[str],
        decision: Optional[str],
    ) -> Optional[DecisionResult]:
        """参数校验，通过时返回 None"""
        missing = []
        if not instance_id:
            missing.append("instanceId")
        if not decision:
            missing.append("decision")

        if missing:
            logger.warning(f"[DecisionRelay] 缺少必要参数: {', '.join(missing)}")
            return DecisionResult(
                success=False,
                message=f"Missing required parameters: {', '.join(missing)}",
                instance_id=instance_id or "N/A",
                decision=decision or "N/A",
                error=ErrorCode.MISSING_PARAMETERS,
            )

        if decision not in (DecisionCode.APPROVE.value, DecisionCode.REJECT.value):
            logger.warning(f"[DecisionRelay] 非法决策代码: {decision}")
            return DecisionResult(
                success=False,
                message="Invalid decision parameter. Must be 0001 (Approve) or 0002 (Reject)",
                instance_id=instance_id,
                decision=decision,
                error=ErrorCode.INVALID_DECISION,
            )

        return None

    async def fetch_csrf_token(self, client: httpx.AsyncClient) -> TokenAcquired:
        """
        阶段一：获取 CSRF Token 和会话 Cookie

        Raises:
            TokenFetchError: 状态码非 2xx，或响应中没有 Token
            httpx.TransportError: 连接失败、超时等传输层错误
        """
        response = await self._within_deadline(client.get(
            self.service_path,
            headers={
                "X-CSRF-Token": "Fetch",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        ))

        if not response.is_success:
            raise TokenFetchError(
                f"Token request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        token = response.headers.get("x-csrf-token")
        if not token:
            raise TokenFetchError("No CSRF token received from server")

        return TokenAcquired(token=token, cookies=_collect_cookies(response))

    async def submit_decision(
        self,
        client: httpx.AsyncClient,
        token: TokenAcquired,
        instance_id: str,
        decision: DecisionCode,
        comments: str,
    ) -> httpx.Response:
        """
        阶段二：提交决策

        Raises:
            DecisionSubmissionError: 状态码非 2xx
            httpx.TransportError: 连接失败、超时等传输层错误
        """
        headers = {
            "X-CSRF-Token": token.token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token.cookies:
            headers["Cookie"] = token.cookies

        response = await self._within_deadline(client.post(
            build_decision_path(self.service_path, instance_id, decision.value, comments),
            headers=headers,
            json={},
        ))

        if not response.is_success:
            raise DecisionSubmissionError(response.status_code, _parse_body(response))

        return response
