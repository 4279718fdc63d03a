"""
StockLedger FastAPI 主应用
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sl_core import __version__
from sl_core.config import get_settings
from sl_core.database import get_db_manager
from sl_core.middleware.logging import LoggingMiddleware
from sl_core.middleware.metrics import MetricsMiddleware
from sl_core.utils.errors import LedgerException
from sl_core.utils.logger import setup_logging, get_logger
from sl_core.api import api_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting StockLedger application", version=__version__)

    db_manager = get_db_manager()
    db_healthy = await db_manager.check_connection()
    if not db_healthy:
        logger.error("Database connection check failed")
        raise RuntimeError("Database connection failed")

    # 桌面部署没有迁移步骤，SQLite 上直接建表
    if db_manager.is_sqlite:
        await db_manager.create_tables()

    logger.info("StockLedger application started successfully")

    yield

    logger.info("Shutting down StockLedger application")
    await db_manager.close()
    logger.info("StockLedger application shutdown complete")


def create_app() -> FastAPI:
    """创建 FastAPI 应用"""
    settings = get_settings()

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format
    )

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="StockLedger Inventory Ledger API",
        docs_url="/docs" if settings.api_debug else None,
        redoc_url="/redoc" if settings.api_debug else None,
        openapi_url="/openapi.json" if settings.api_debug else None,
        lifespan=lifespan
    )

    # 中间件（后添加的在外层）
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.api_debug else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.metrics_enabled:
        app.add_middleware(MetricsMiddleware)

    app.add_middleware(LoggingMiddleware)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.exception_handler(LedgerException)
    async def ledger_exception_handler(request: Request, exc: LedgerException):
        """处理 StockLedger 自定义异常"""
        if exc.status >= 500:
            logger.error("Ledger operation failed", code=exc.code, detail=exc.detail)
        return exc.to_response(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理请求体/参数校验异常"""
        logger.warning("Request validation failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=422,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": "Validation Error",
                    "status": 422,
                    "detail": "Request validation failed",
                    "code": "VALIDATION_ERROR",
                    "validation_errors": jsonable_encoder(exc.errors())
                }
            }
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """处理 HTTP 异常（包括未匹配的路由）"""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": str(exc.detail),
                    "status": exc.status_code,
                    "detail": str(exc.detail),
                    "code": f"HTTP_{exc.status_code}"
                }
            }
        )

    @app.exception_handler(500)
    async def internal_server_error_handler(request: Request, exc: Exception):
        """处理未捕获的服务器错误"""
        logger.error("Unhandled server error", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": "Internal Server Error",
                    "status": 500,
                    "detail": "An internal server error occurred",
                    "code": "INTERNAL_SERVER_ERROR"
                }
            }
        )

    @app.get("/healthz")
    async def health_check():
        """健康检查端点"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "sl_core.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_level=settings.log_level.lower(),
        access_log=False,  # 使用自定义日志中间件
    )
