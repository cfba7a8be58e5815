# app/api/workflow_decision.py
# 工作流决策 API 端点
#
# API 列表：
# - POST /odata/v4/approval/processWorkflowDecision - 通过/拒绝工作流任务
#
# 无论成功失败都返回 200 和统一的结果结构，
# 调用方通过 success 和 error 字段判断结果。
# 请求体格式错误（非法 JSON、字段类型不对）也不例外，见 DecisionRoute。

from typing import Callable, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from app.core.logging import get_logger
from app.schemas.workflow_decision import DecisionRequest, DecisionResult, ErrorCode
from app.services.workflow_decision import DecisionRelay

logger = get_logger(__name__)


class DecisionRoute(APIRoute):
    """
    决策接口专用路由类

    把请求体校验失败（RequestValidationError）转换为 INVALID_PARAMETERS
    结果，而不是 FastAPI 默认的 422 {"detail": [...]}。
    """

    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def handler(request: Request) -> Response:
            try:
                return await original_handler(request)
            except RequestValidationError as exc:
                errors = [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
                    for e in exc.errors()
                ]
                logger.warning(f"决策请求体无效: {errors}")
                result = DecisionResult(
                    success=False,
                    message="Invalid request body. Expected JSON with instanceId, decision and optional comments",
                    instance_id="N/A",
                    decision="N/A",
                    error=ErrorCode.INVALID_PARAMETERS,
                    details=errors,
                )
                return JSONResponse(
                    status_code=200,
                    content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
                )

        return handler


router = APIRouter(
    prefix="/odata/v4/approval",
    tags=["Workflow Decision"],
    route_class=DecisionRoute,
)


def get_decision_relay(request: Request) -> DecisionRelay:
    """从应用上下文获取 DecisionRelay（在 create_app 中注入）"""
    return request.app.state.decision_relay


@router.post(
    "/processWorkflowDecision",
    response_model=DecisionResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="处理工作流决策",
    description="将通过（0001）或拒绝（0002）决策转发到 S/4HANA TaskProcessing 服务",
)
async def process_workflow_decision(
    payload: Optional[DecisionRequest] = None,
    relay: DecisionRelay = Depends(get_decision_relay),
) -> DecisionResult:
    # 空请求体按全部参数缺失处理
    payload = payload or DecisionRequest()
    logger.info(
        f"收到工作流决策请求: instance={payload.instance_id}, decision={payload.decision}"
    )
    return await relay.process_workflow_decision(
        instance_id=payload.instance_id,
        decision=payload.decision,
        comments=payload.comments,
    )
