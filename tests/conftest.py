"""
Pytest 配置和 fixtures
"""
import asyncio
import copy
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Dict, Optional, Set

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sl_core.database import DatabaseManager, get_db_manager
from sl_core.ledger.store import (
    ItemStore, ItemUnitOfWork, SqlItemStore, WRITABLE_FIELDS, get_item_store
)
from sl_core.services import (
    BulkCreateService, CheckoutService, ItemQueryService, ItemService
)
from sl_core.utils.errors import ItemNotFoundError, StoreError


class MemoryUnitOfWork(ItemUnitOfWork):
    """内存工作单元：直接修改 MemoryItemStore 的行"""

    def __init__(self, store: "MemoryItemStore"):
        self.store = store

    async def load(self, item_no: int, for_update: bool = False) -> Optional[SimpleNamespace]:
        row = self.store.rows.get(item_no)
        return SimpleNamespace(**row) if row is not None else None

    async def insert(self, fields: Dict[str, Any]) -> int:
        self.store.next_item_no += 1
        item_no = self.store.next_item_no
        now = datetime.now(timezone.utc)
        self.store.rows[item_no] = {
            "item_no": item_no,
            "brand": "",
            "item_type": "",
            "location": "",
            "unit_of_measure": "",
            "supplier": "",
            "last_po": "",
            "price_per_unit": Decimal("0"),
            "in_qty": 0,
            "out_qty": 0,
            "min_stock": 0,
            **fields,
            "created_at": now,
            "updated_at": now,
        }
        return item_no

    async def persist(self, item_no: int, fields: Dict[str, Any]) -> None:
        assert set(fields) <= WRITABLE_FIELDS
        if item_no in self.store.failing_item_nos:
            raise StoreError(code="TRANSACTION_FAILED", detail=f"Simulated write failure for item {item_no}")
        row = self.store.rows.get(item_no)
        if row is None:
            raise ItemNotFoundError(item_no)
        row.update(fields)
        row["updated_at"] = datetime.now(timezone.utc)
        # 与数据库的 CHECK 约束一致
        if row["in_qty"] < row["out_qty"]:
            raise StoreError(code="STORE_CONSTRAINT_VIOLATION", detail="in_qty >= out_qty violated")

    async def delete(self, item_no: int) -> None:
        if self.store.rows.pop(item_no, None) is None:
            raise ItemNotFoundError(item_no)


class MemoryItemStore(ItemStore):
    """内存存储：事务开始时取快照，异常时整体恢复"""

    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self.next_item_no = 0
        self.failing_item_nos: Set[int] = set()
        self.commits = 0
        self.rollbacks = 0
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[MemoryUnitOfWork, None]:
        async with self._lock:
            snapshot = copy.deepcopy(self.rows)
            try:
                yield MemoryUnitOfWork(self)
            except BaseException:
                # item_no 不复用，计数器不回退
                self.rows = snapshot
                self.rollbacks += 1
                raise
            self.commits += 1


@pytest.fixture
def memory_store() -> MemoryItemStore:
    """内存存储 fixture"""
    return MemoryItemStore()


@pytest_asyncio.fixture
async def db_manager(tmp_path) -> AsyncGenerator[DatabaseManager, None]:
    """数据库管理器 fixture（临时 SQLite 文件）"""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'ledger_test.db'}")
    await manager.create_tables()

    yield manager

    await manager.drop_tables()
    await manager.close()


@pytest.fixture
def store(db_manager) -> SqlItemStore:
    return SqlItemStore(db_manager)


@pytest.fixture
def item_service(store) -> ItemService:
    return ItemService(store)


@pytest.fixture
def checkout_service(store) -> CheckoutService:
    return CheckoutService(store)


@pytest.fixture
def bulk_service(store) -> BulkCreateService:
    return BulkCreateService(store)


@pytest.fixture
def query_service(db_manager) -> ItemQueryService:
    return ItemQueryService(db_manager)


@pytest.fixture
def make_item(item_service):
    """创建库存项的工厂，返回项目视图"""
    async def _make_item(item_name: str = "Widget", balance: Any = 0, **fields: Any) -> Dict[str, Any]:
        result = await item_service.create_item({"item_name": item_name, "balance": balance, **fields})
        return result.data

    return _make_item


@pytest_asyncio.fixture
async def client(db_manager, store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP 客户端 fixture：依赖替换为测试数据库"""
    from sl_core.app import app

    app.dependency_overrides[get_db_manager] = lambda: db_manager
    app.dependency_overrides[get_item_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_item_data() -> Dict[str, Any]:
    """示例库存项数据"""
    return {
        "item_name": "Hex Bolt M8",
        "brand": "Acme",
        "item_type": "Fastener",
        "location": "A-01",
        "unit_of_measure": "pcs",
        "supplier": "Bolt Supply Co",
        "last_po": "PO-1001",
        "price_per_unit": "0.25",
        "min_stock": 10,
        "balance": 20,
    }
