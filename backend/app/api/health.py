# app/api/health.py

from fastapi import APIRouter, Request

from app.core.registry import MODEL_PROVIDER

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request):
    """Basic health check including optional collaborator availability"""
    registry = request.app.state.registry
    return {
        "status": "ok",
        "services": {
            MODEL_PROVIDER: "available" if registry.has(MODEL_PROVIDER) else "not registered",
        },
    }
