"""
库存目录查询服务（只读）
列表过滤/分页/排序、筛选项、按供应商查询、仪表盘统计、库存汇总报表
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, case, or_, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from sl_core.config import get_settings
from sl_core.database import DatabaseManager, get_db_manager
from sl_core.ledger.derived import (
    ITEM_STATUSES, STATUS_IN_STOCK, STATUS_LOW_IN_STOCK, STATUS_OUT_OF_STOCK,
    project_item, to_money,
)
from sl_core.models import Item
from sl_core.utils.errors import LedgerException, StoreError, ValidationError
from sl_core.utils.logger import get_logger

SORTABLE_COLUMNS = {
    "item_no": Item.item_no,
    "item_name": Item.item_name,
    "brand": Item.brand,
    "item_type": Item.item_type,
    "location": Item.location,
    "balance": Item.balance,
    "min_stock": Item.min_stock,
    "deficit": Item.deficit,
    "price_per_unit": Item.price_per_unit,
    "cost": Item.cost,
    "item_status": Item.item_status,
    "last_po": Item.last_po,
    "supplier": Item.supplier,
}

SORT_ORDERS = ("ASC", "DESC")


def escape_like(value: str) -> str:
    """转义 LIKE 通配符，搜索词按字面匹配"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ItemQueryService:
    """库存目录查询服务"""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_db_manager()
        self.settings = get_settings()
        self.logger = get_logger(self.__class__.__name__)

    async def execute_with_session(self, operation, *args, **kwargs) -> Any:
        """使用数据库会话执行只读操作"""
        try:
            async with self.db_manager.get_session() as session:
                return await operation(session, *args, **kwargs)
        except LedgerException:
            raise
        except Exception as e:
            self.logger.error("Catalog query failed", exc_info=True)
            raise StoreError(
                code="SESSION_OPERATION_FAILED",
                detail=f"Database operation failed: {str(e)}"
            )

    async def list_items(
        self,
        search: str = "",
        item_type: str = "",
        location: str = "",
        item_status: str = "",
        sort_by: str = "item_no",
        sort_order: str = "ASC",
        limit: Optional[int] = None,
        offset: int = 0
    ) -> Dict[str, Any]:
        """过滤 + 分页 + 排序，并附带过滤集合上的统计信息"""
        sort_column = sort_by if sort_by in SORTABLE_COLUMNS else "item_no"
        order = (sort_order or "ASC").upper()
        order = order if order in SORT_ORDERS else "ASC"

        if limit is None:
            limit = self.settings.list_default_limit
        limit = min(max(1, limit), self.settings.list_max_limit)
        if offset < 0:
            raise ValidationError(code="INVALID_OFFSET", detail="Offset cannot be negative", field="offset")

        conditions = self._build_conditions(search, item_type, location, item_status)

        result = await self.execute_with_session(
            self._list_items_query, conditions, sort_column, order, limit, offset
        )
        total = result["total"]

        return {
            "items": result["items"],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "pages": math.ceil(total / limit) if total else 0,
                "current_page": offset // limit + 1,
            },
            "filters": {
                "search": search,
                "item_type": item_type,
                "location": location,
                "item_status": item_status,
                "sort_by": sort_column,
                "sort_order": order,
            },
            "statistics": result["statistics"],
        }

    def _build_conditions(self, search: str, item_type: str, location: str, item_status: str) -> List[Any]:
        conditions = []
        if search:
            pattern = f"%{escape_like(search)}%"
            conditions.append(or_(
                Item.item_name.ilike(pattern, escape="\\"),
                Item.brand.ilike(pattern, escape="\\"),
                Item.supplier.ilike(pattern, escape="\\")
            ))
        if item_type:
            conditions.append(Item.item_type == item_type)
        if location:
            conditions.append(Item.location == location)
        if item_status:
            conditions.append(Item.item_status == item_status)
        return conditions

    async def _list_items_query(
        self,
        session: AsyncSession,
        conditions: List[Any],
        sort_column: str,
        order: str,
        limit: int,
        offset: int
    ) -> Dict[str, Any]:
        column = SORTABLE_COLUMNS[sort_column]
        ordering = column.desc() if order == "DESC" else column.asc()

        stmt = (
            select(Item)
            .where(*conditions)
            .order_by(ordering, Item.item_no.asc())
            .limit(limit)
            .offset(offset)
        )
        items = list((await session.execute(stmt)).scalars().all())

        total = (await session.execute(
            select(func.count()).select_from(Item).where(*conditions)
        )).scalar_one()

        stats_row = (await session.execute(
            select(
                func.count().label("total_items"),
                self._status_count(STATUS_OUT_OF_STOCK).label("out_of_stock"),
                self._status_count(STATUS_LOW_IN_STOCK).label("low_stock"),
                self._status_count(STATUS_IN_STOCK).label("in_stock"),
                func.coalesce(func.sum(Item.cost), 0).label("total_inventory_value"),
                func.coalesce(func.sum(Item.balance), 0).label("total_items_count"),
            ).select_from(Item).where(*conditions)
        )).one()

        return {
            "items": [project_item(item) for item in items],
            "total": total,
            "statistics": {
                "total_items": stats_row.total_items,
                "out_of_stock": stats_row.out_of_stock,
                "low_stock": stats_row.low_stock,
                "in_stock": stats_row.in_stock,
                "total_inventory_value": str(to_money(stats_row.total_inventory_value)),
                "total_items_count": int(stats_row.total_items_count),
            },
        }

    @staticmethod
    def _status_count(status: str):
        return func.coalesce(func.sum(case((Item.item_status == status, 1), else_=0)), 0)

    async def filter_options(self) -> Dict[str, List[str]]:
        """下拉筛选项"""
        return await self.execute_with_session(self._filter_options_query)

    async def _filter_options_query(self, session: AsyncSession) -> Dict[str, List[str]]:
        async def distinct_values(column) -> List[str]:
            stmt = (
                select(column)
                .distinct()
                .where(column.is_not(None), column != "")
                .order_by(column)
            )
            return list((await session.execute(stmt)).scalars().all())

        present = set((await session.execute(select(Item.item_status).distinct())).scalars().all())

        return {
            "item_types": await distinct_values(Item.item_type),
            "locations": await distinct_values(Item.location),
            "item_statuses": [status for status in ITEM_STATUSES if status in present],
            "suppliers": await distinct_values(Item.supplier),
        }

    async def items_by_supplier(self, supplier: str) -> Dict[str, Any]:
        """按供应商查询"""
        items = await self.execute_with_session(self._items_by_supplier_query, supplier)
        return {"supplier": supplier, "count": len(items), "items": items}

    async def _items_by_supplier_query(self, session: AsyncSession, supplier: str) -> List[Dict[str, Any]]:
        stmt = select(Item).where(Item.supplier == supplier).order_by(Item.item_name, Item.item_no)
        return [project_item(item) for item in (await session.execute(stmt)).scalars().all()]

    async def dashboard_stats(self) -> Dict[str, Any]:
        """仪表盘统计"""
        return await self.execute_with_session(self._dashboard_stats_query)

    async def _dashboard_stats_query(self, session: AsyncSession) -> Dict[str, Any]:
        return {
            "overview": await self._overview(session),
            "low_stock_items": await self._critical_items(session, limit=10),
            "high_value_items": await self._high_value_items(session),
        }

    async def inventory_summary(self) -> Dict[str, Any]:
        """库存汇总报表：总览、按类型/库位/供应商分组、紧缺项、高价值项"""
        return await self.execute_with_session(self._inventory_summary_query)

    async def _inventory_summary_query(self, session: AsyncSession) -> Dict[str, Any]:
        return {
            "overview": await self._overview(session),
            "breakdown": {
                "by_category": await self._breakdown(session, Item.item_type, "item_type"),
                "by_location": await self._breakdown(session, Item.location, "location"),
                "by_supplier": await self._breakdown(session, Item.supplier, "supplier"),
            },
            "critical_items": await self._critical_items(session, limit=20),
            "high_value_items": await self._high_value_items(session),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def _overview(self, session: AsyncSession) -> Dict[str, Any]:
        def distinct_non_empty(column):
            return func.count(distinct(case((column != "", column), else_=None)))

        overview = (await session.execute(
            select(
                func.count().label("total_items"),
                self._status_count(STATUS_OUT_OF_STOCK).label("out_of_stock_count"),
                self._status_count(STATUS_LOW_IN_STOCK).label("low_stock_count"),
                self._status_count(STATUS_IN_STOCK).label("in_stock_count"),
                func.coalesce(func.sum(Item.cost), 0).label("total_inventory_value"),
                func.coalesce(func.sum(Item.balance), 0).label("total_quantity"),
                func.coalesce(func.avg(Item.price_per_unit), 0).label("avg_price_per_unit"),
                distinct_non_empty(Item.item_type).label("total_categories"),
                distinct_non_empty(Item.location).label("total_locations"),
                distinct_non_empty(Item.supplier).label("total_suppliers"),
            ).select_from(Item)
        )).one()

        return {
            "total_items": overview.total_items,
            "out_of_stock_count": overview.out_of_stock_count,
            "low_stock_count": overview.low_stock_count,
            "in_stock_count": overview.in_stock_count,
            "total_inventory_value": str(to_money(overview.total_inventory_value)),
            "total_quantity": int(overview.total_quantity),
            "avg_price_per_unit": str(to_money(overview.avg_price_per_unit)),
            "total_categories": overview.total_categories,
            "total_locations": overview.total_locations,
            "total_suppliers": overview.total_suppliers,
        }

    async def _breakdown(self, session: AsyncSession, column, key: str) -> List[Dict[str, Any]]:
        """按某个描述字段分组汇总，空值不参与分组，按总价值降序"""
        total_value = func.coalesce(func.sum(Item.cost), 0)
        stmt = (
            select(
                column.label(key),
                func.count().label("item_count"),
                func.coalesce(func.sum(Item.balance), 0).label("total_quantity"),
                total_value.label("total_value"),
            )
            .where(column.is_not(None), column != "")
            .group_by(column)
            .order_by(total_value.desc(), column)
        )
        rows = (await session.execute(stmt)).all()
        return [
            {
                key: getattr(row, key),
                "item_count": row.item_count,
                "total_quantity": int(row.total_quantity),
                "total_value": str(to_money(row.total_value)),
            }
            for row in rows
        ]

    async def _critical_items(self, session: AsyncSession, limit: int) -> List[Dict[str, Any]]:
        stmt = (
            select(Item)
            .where(Item.item_status != STATUS_IN_STOCK)
            .order_by(Item.deficit.desc(), Item.item_status.desc(), Item.item_no)
            .limit(limit)
        )
        return [project_item(item) for item in (await session.execute(stmt)).scalars().all()]

    async def _high_value_items(self, session: AsyncSession) -> List[Dict[str, Any]]:
        stmt = select(Item).order_by(Item.cost.desc(), Item.item_no).limit(10)
        return [project_item(item) for item in (await session.execute(stmt)).scalars().all()]
