# app/schemas/workflow_decision.py
# 工作流决策 Schemas
#
# 定义 processWorkflowDecision 动作的请求和响应数据模型
# JSON 字段统一使用 camelCase（instanceId、decisionText、httpStatus）

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DecisionCode(str, Enum):
    """决策代码"""
    APPROVE = "0001"    # 通过
    REJECT = "0002"     # 拒绝

    @property
    def text(self) -> str:
        return "Approved" if self is DecisionCode.APPROVE else "Rejected"


class ErrorCode(str, Enum):
    """错误代码"""
    # 输入错误
    MISSING_PARAMETERS = "MISSING_PARAMETERS"
    INVALID_DECISION = "INVALID_DECISION"

    # Token 获取阶段
    DESTINATION_AUTH_FAILED = "DESTINATION_AUTH_FAILED"
    SERVICE_NOT_FOUND = "SERVICE_NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    CSRF_ERROR = "CSRF_ERROR"

    # 决策提交阶段
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    INSTANCE_NOT_FOUND = "INSTANCE_NOT_FOUND"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    DECISION_ERROR = "DECISION_ERROR"

    # 传输层 / 兜底
    NOT_FOUND = "NOT_FOUND"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    TIMEOUT = "TIMEOUT"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


def utc_timestamp() -> str:
    """当前时间，格式如 2026-01-30T12:00:00.000Z"""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


class DecisionRequest(BaseModel):
    """
    决策请求

    字段都是可选的，缺失参数由 DecisionRelay 统一校验并返回
    MISSING_PARAMETERS，而不是由框架返回 422。
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    instance_id: Optional[str] = Field(None, description="工作流实例 ID")
    decision: Optional[str] = Field(None, description="决策代码：0001 通过 / 0002 拒绝")
    comments: Optional[str] = Field(None, description="审批意见，不填则使用默认文本")

    @field_validator("instance_id", "decision", "comments", mode="before")
    @classmethod
    def _coerce_number(cls, value):
        # 实例 ID 常被前端当作数字发送，统一转为字符串
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class DecisionResult(BaseModel):
    """决策结果"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    instance_id: str
    decision: str
    decision_text: Optional[str] = None
    comments: Optional[str] = None
    timestamp: str = Field(default_factory=utc_timestamp)
    error: Optional[ErrorCode] = None
    http_status: Optional[int] = None
    details: Optional[Any] = None
