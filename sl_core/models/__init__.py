"""
StockLedger 数据模型包
"""
from .base import Base
from .items import Item

__all__ = [
    "Base",
    "Item",
]
