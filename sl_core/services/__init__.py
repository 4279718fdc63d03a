"""
StockLedger 核心服务模块
"""
from .base import BaseService, ServiceResult
from .items import ItemService
from .checkout import CheckoutService
from .bulk import BulkCreateService
from .catalog import ItemQueryService

__all__ = [
    "BaseService",
    "ServiceResult",
    "ItemService",
    "CheckoutService",
    "BulkCreateService",
    "ItemQueryService",
]
