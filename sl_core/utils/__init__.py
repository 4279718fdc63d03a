"""
StockLedger 实用工具模块
"""

from .logger import bind_operation, get_logger, LogContext, setup_logging
from .errors import (
    LedgerException,
    ValidationError,
    NotFoundError,
    ItemNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    StoreError,
)

__all__ = [
    "bind_operation",
    "get_logger",
    "LogContext",
    "setup_logging",
    "LedgerException",
    "ValidationError",
    "NotFoundError",
    "ItemNotFoundError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "StoreError",
]
