"""
StockLedger API 路由模块
"""
from fastapi import APIRouter

from .items import router as items_router
from .system import router as system_router

# 创建主路由器
api_router = APIRouter()

api_router.include_router(items_router, prefix="/items", tags=["Items"])
api_router.include_router(system_router, prefix="/system", tags=["System"])

__all__ = ["api_router"]
