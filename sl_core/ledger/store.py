"""
库存台账存储能力

服务层只依赖 ItemStore 接口：transaction() 提供一个工作单元（load/insert/persist/delete），
正常退出提交，异常回滚。默认实现基于 SQLAlchemy 异步会话；测试可替换为内存实现。
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncGenerator, Dict, Optional

from sqlalchemy import select, delete as sql_delete, update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sl_core.database import DatabaseManager, get_db_manager
from sl_core.models import Item
from sl_core.utils.errors import ItemNotFoundError, LedgerException, StoreError
from sl_core.utils.logger import get_logger

logger = get_logger(__name__)

# 允许写入的列；派生字段不在其中
WRITABLE_FIELDS = frozenset({
    "item_name", "brand", "item_type", "location", "unit_of_measure",
    "supplier", "last_po", "price_per_unit", "in_qty", "out_qty", "min_stock",
})


class ItemUnitOfWork(ABC):
    """一个事务内的库存项读写操作"""

    @abstractmethod
    async def load(self, item_no: int, for_update: bool = False) -> Optional[Any]:
        """按 item_no 读取记录，不存在时返回 None"""

    @abstractmethod
    async def insert(self, fields: Dict[str, Any]) -> int:
        """插入新记录并返回分配的 item_no"""

    @abstractmethod
    async def persist(self, item_no: int, fields: Dict[str, Any]) -> None:
        """写入字段；记录不存在时抛出 ItemNotFoundError"""

    @abstractmethod
    async def delete(self, item_no: int) -> None:
        """删除记录；记录不存在时抛出 ItemNotFoundError"""


class ItemStore(ABC):
    """存储能力接口"""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[ItemUnitOfWork]:
        """开启事务并返回工作单元"""


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown item fields: {', '.join(sorted(unknown))}")


class SqlItemUnitOfWork(ItemUnitOfWork):
    """基于 AsyncSession 的工作单元"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self, item_no: int, for_update: bool = False) -> Optional[Item]:
        stmt = (
            select(Item)
            .where(Item.item_no == item_no)
            .execution_options(populate_existing=True)
        )
        if for_update:
            # PostgreSQL 行锁；SQLite 上由 BEGIN IMMEDIATE 保证串行
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert(self, fields: Dict[str, Any]) -> int:
        _check_fields(fields)
        item = Item(**fields)
        self.session.add(item)
        await self.session.flush()  # 获取生成的 item_no
        return item.item_no

    async def persist(self, item_no: int, fields: Dict[str, Any]) -> None:
        _check_fields(fields)
        stmt = (
            sql_update(Item)
            .where(Item.item_no == item_no)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise ItemNotFoundError(item_no)

    async def delete(self, item_no: int) -> None:
        stmt = (
            sql_delete(Item)
            .where(Item.item_no == item_no)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise ItemNotFoundError(item_no)


class SqlItemStore(ItemStore):
    """SQLAlchemy 存储实现"""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_db_manager()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[SqlItemUnitOfWork, None]:
        try:
            async with self.db_manager.get_transaction() as session:
                yield SqlItemUnitOfWork(session)
        except LedgerException:
            raise
        except IntegrityError as e:
            logger.error("Item store integrity violation", err=str(e.orig))
            raise StoreError(
                code="STORE_CONSTRAINT_VIOLATION",
                detail=f"Database constraint violated: {e.orig}"
            )
        except SQLAlchemyError as e:
            logger.error("Item store transaction failed", exc_info=True)
            raise StoreError(
                code="TRANSACTION_FAILED",
                detail=f"Database transaction failed: {str(e)}"
            )
        except Exception as e:
            # 驱动层错误（如 OverflowError）不是 SQLAlchemyError
            logger.error("Item store operation failed", exc_info=True)
            raise StoreError(
                code="STORE_OPERATION_FAILED",
                detail=f"Item store operation failed: {str(e)}"
            )


_item_store: Optional[ItemStore] = None


def get_item_store() -> ItemStore:
    """依赖注入：获取默认存储（测试中通过 dependency_overrides 替换）"""
    global _item_store
    if _item_store is None:
        _item_store = SqlItemStore(get_db_manager())
    return _item_store
