"""
StockLedger 中间件
"""
from .logging import LoggingMiddleware
from .metrics import MetricsMiddleware, get_metrics_handler

__all__ = ["LoggingMiddleware", "MetricsMiddleware", "get_metrics_handler"]
