"""
请求日志中间件

记录所有入站 API 请求：方法、路径、查询参数、状态码、耗时
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from sl_core.utils.logger import get_logger, LogContext


# 不记录查询参数的路径
SKIP_DETAIL_PATHS = {
    "/healthz",
    "/api/system/metrics",
    "/favicon.ico",
}


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    def __init__(self, app, logger=None):
        super().__init__(app)
        self.logger = logger or get_logger("middleware.logging")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # 沿用上游传入的 trace_id，否则生成新的
        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        method = request.method
        path = request.url.path
        skip_detail = path in SKIP_DETAIL_PATHS
        start_time = time.time()

        with LogContext(trace_id=trace_id):
            log_data = {
                "direction": "inbound",
                "method": method,
                "path": path,
                "client_ip": self._get_client_ip(request),
            }
            if request.query_params and not skip_detail:
                log_data["query_params"] = dict(request.query_params)

            self.logger.info("API request", **log_data)

            try:
                response = await call_next(request)
            except Exception as e:
                self.logger.error(
                    "API request failed",
                    direction="inbound",
                    method=method,
                    path=path,
                    latency_ms=int((time.time() - start_time) * 1000),
                    result="error",
                    err=str(e),
                    exc_info=True
                )
                raise

            resp_log_data = {
                "direction": "inbound",
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "latency_ms": int((time.time() - start_time) * 1000),
                "result": "success" if response.status_code < 400 else "error",
            }

            if response.status_code >= 400:
                self.logger.warning("API response error", **resp_log_data)
            else:
                self.logger.info("API response", **resp_log_data)

            response.headers["X-Trace-Id"] = trace_id
            return response

    def _get_client_ip(self, request: Request) -> str:
        """获取客户端 IP"""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
