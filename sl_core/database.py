"""
StockLedger 数据库连接和会话管理
"""
import logging
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
    AsyncEngine
)
from sqlalchemy.pool import StaticPool
from sqlalchemy import text, event

from sl_core.config import get_settings
from sl_core.utils.logger import get_logger
from sl_core.models.base import Base

logger = get_logger(__name__)

# 慢查询阈值（毫秒）
SLOW_QUERY_THRESHOLD_MS = 100

_slow_query_logger: Optional[logging.Logger] = None


def get_slow_query_logger() -> logging.Logger:
    """获取慢查询日志记录器（单例）"""
    global _slow_query_logger
    if _slow_query_logger is None:
        _slow_query_logger = logging.getLogger("slow_query")
        _slow_query_logger.setLevel(logging.INFO)
        _slow_query_logger.propagate = False

        log_dir = Path(__file__).parent.parent / "logs"
        log_dir.mkdir(exist_ok=True)

        # 10MB 轮转，保留 5 个文件
        handler = RotatingFileHandler(
            log_dir / "slow.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(message)s"
        ))
        _slow_query_logger.addHandler(handler)

    return _slow_query_logger


def _setup_slow_query_logging(engine):
    """为同步引擎设置慢查询监控"""
    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time", [])
        if start_times:
            start_time = start_times.pop()
            duration_ms = (time.perf_counter() - start_time) * 1000

            if duration_ms >= SLOW_QUERY_THRESHOLD_MS:
                slow_logger = get_slow_query_logger()
                sql = statement[:2000] + "..." if len(statement) > 2000 else statement
                sql = sql.replace("\n", " ").replace("  ", " ")
                slow_logger.info(
                    f"duration={duration_ms:.1f}ms | sql={sql} | params={str(parameters)[:500]}"
                )


def _setup_sqlite_serialized_writes(engine):
    """
    SQLite 事务一律以 BEGIN IMMEDIATE 开始

    pysqlite/aiosqlite 默认延迟开启事务，读-改-写之间可能被另一个写入者插入；
    立即获取写锁后，同一库上的事务串行执行。
    """
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


class DatabaseManager:
    """数据库管理器"""

    def __init__(self, database_url: Optional[str] = None):
        self.settings = get_settings()
        self.database_url = database_url or self.settings.database_url
        self._async_engine: Optional[AsyncEngine] = None
        self._async_session_factory: Optional[async_sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return is_sqlite_url(self.database_url)

    def create_async_engine(self) -> AsyncEngine:
        """创建异步数据库引擎"""
        if self._async_engine is None:
            if self.is_sqlite:
                options = {}
                if ":memory:" in self.database_url or self.database_url.endswith("://"):
                    # 内存库只能共享同一个连接
                    options["poolclass"] = StaticPool
                self._async_engine = create_async_engine(
                    self.database_url,
                    echo=self.settings.api_debug,
                    **options
                )
                _setup_sqlite_serialized_writes(self._async_engine.sync_engine)
            else:
                self._async_engine = create_async_engine(
                    self.database_url,
                    pool_size=self.settings.db_pool_size,
                    max_overflow=self.settings.db_max_overflow,
                    pool_pre_ping=True,
                    pool_recycle=3600,
                    echo=self.settings.api_debug,
                )
            _setup_slow_query_logging(self._async_engine.sync_engine)
            logger.info("Created async database engine", sqlite=self.is_sqlite)

        return self._async_engine

    def get_async_session_factory(self) -> async_sessionmaker:
        """获取异步会话工厂"""
        if self._async_session_factory is None:
            engine = self.create_async_engine()
            self._async_session_factory = async_sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,  # 手动控制刷新时机
            )

        return self._async_session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """获取数据库会话上下文管理器"""
        session_factory = self.get_async_session_factory()
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """获取事务上下文管理器：正常退出提交，异常（含取消）回滚"""
        session_factory = self.get_async_session_factory()
        async with session_factory() as session:
            async with session.begin():
                yield session

    async def create_tables(self) -> None:
        """创建所有表（测试与 SQLite 桌面部署使用）"""
        engine = self.create_async_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created all database tables")

    async def drop_tables(self) -> None:
        """删除所有表（仅用于测试）"""
        engine = self.create_async_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Dropped all database tables")

    async def check_connection(self) -> bool:
        """检查数据库连接"""
        try:
            engine = self.create_async_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection check passed")
            return True
        except Exception:
            logger.error("Database connection check failed", exc_info=True)
            return False

    async def close(self) -> None:
        """关闭数据库连接"""
        if self._async_engine:
            await self._async_engine.dispose()
            self._async_engine = None
            self._async_session_factory = None
            logger.info("Closed async database engine")


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """获取数据库管理器单例"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
