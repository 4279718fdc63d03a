"""
系统 API 路由
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from sl_core import __version__
from sl_core.database import DatabaseManager, get_db_manager
from sl_core.middleware.metrics import get_metrics_handler
from .models import ApiResponse

router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict])
async def health_check(db_manager: DatabaseManager = Depends(get_db_manager)):
    """健康检查（含数据库连通性）"""
    db_healthy = await db_manager.check_connection()
    return ApiResponse.success({
        "status": "healthy" if db_healthy else "degraded",
        "database": "ok" if db_healthy else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    })


@router.get("/metrics")
async def metrics(request: Request):
    """Prometheus 指标端点"""
    handler = get_metrics_handler()
    return await handler(request)
