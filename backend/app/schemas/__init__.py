# app/schemas/__init__.py
# Pydantic Schema 包
#
# 这个文件用于导出所有 Schema，方便其他模块导入
# 使用方式：from app.schemas import DecisionRequest, DecisionResult

from app.schemas.workflow_decision import (
    DecisionCode,
    DecisionRequest,
    DecisionResult,
    ErrorCode,
)

__all__ = [
    "DecisionCode",
    "DecisionRequest",
    "DecisionResult",
    "ErrorCode",
]
