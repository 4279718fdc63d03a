"""
指标收集中间件
"""
import re
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware

from sl_core.config import get_settings

_prefix = get_settings().metrics_prefix

# 指标在模块级注册一次，多次创建应用时复用
REQUEST_COUNT = Counter(
    f'{_prefix}_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

REQUEST_DURATION = Histogram(
    f'{_prefix}_http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint']
)

REQUEST_SIZE = Histogram(
    f'{_prefix}_http_request_size_bytes',
    'HTTP request size',
    ['method', 'endpoint']
)

_ID_PATTERN = re.compile(r'/\d+')


class MetricsMiddleware(BaseHTTPMiddleware):
    """指标收集中间件"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = self._get_endpoint_pattern(request)

        REQUEST_SIZE.labels(method=method, endpoint=endpoint).observe(self._get_request_size(request))

        start_time = time.time()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=status_code).inc()
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)

    def _get_endpoint_pattern(self, request: Request) -> str:
        """获取端点模式（item_no 等数字 ID 替换为占位符）"""
        return _ID_PATTERN.sub('/{id}', request.url.path) or "/"

    def _get_request_size(self, request: Request) -> float:
        """获取请求大小（字节）"""
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                return float(content_length)
            except (ValueError, TypeError):
                pass

        # 估算：请求行 + 头部
        size = len(f"{request.method} {request.url.path} HTTP/1.1")
        for name, value in request.headers.items():
            size += len(f"{name}: {value}\r\n")
        return float(size)


def get_metrics_handler():
    """获取指标端点处理器"""
    async def metrics_endpoint(request: Request):
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return metrics_endpoint
