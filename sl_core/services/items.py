"""
库存项服务
单项的创建、修改、删除以及各种库存变更；每个操作的 读取-对账-写入 在一个事务内完成
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from sl_core.ledger.derived import DESCRIPTIVE_FIELDS, STATUS_IN_STOCK, project_item
from sl_core.ledger.reconciliation import (
    Intent, Issue, Quantities, Receive, SetBalance,
    build_override_intent, ensure_quantity, reconcile,
)
from sl_core.ledger.store import ItemUnitOfWork
from sl_core.utils.errors import (
    InsufficientStockError, ItemNotFoundError, LedgerException, ValidationError, with_context
)
from sl_core.utils.logger import bind_operation
from .base import BaseService, ServiceResult


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ensure_item_no(value: Any) -> int:
    """校验 item_no（正整数）"""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(
            code="INVALID_ITEM_NO",
            detail="Invalid item number",
            field="item_no"
        )
    return value


def _ensure_price(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(code="INVALID_PRICE", detail="Price per unit must be a number", field="price_per_unit")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(code="INVALID_PRICE", detail="Price per unit must be a number", field="price_per_unit")
    if not price.is_finite() or price < 0:
        raise ValidationError(code="INVALID_PRICE", detail="Price per unit cannot be negative", field="price_per_unit")
    return price


def normalize_item_payload(payload: Any) -> Tuple[Dict[str, Any], Any]:
    """
    校验创建/修改请求并填充默认值

    返回 (描述字段 + min_stock + price_per_unit, 期望结存)。
    描述字段缺省为空字符串，数值缺省为 0；结存交由对账引擎校验。
    """
    if not isinstance(payload, dict):
        raise ValidationError(code="INVALID_ITEM_PAYLOAD", detail="Item payload must be an object")

    item_name = payload.get("item_name")
    if not isinstance(item_name, str) or not item_name.strip():
        raise ValidationError(code="ITEM_NAME_REQUIRED", detail="Item name is required", field="item_name")

    fields: Dict[str, Any] = {"item_name": item_name.strip()}
    for field in DESCRIPTIVE_FIELDS:
        if field == "item_name":
            continue
        value = payload.get(field)
        fields[field] = "" if value is None else str(value).strip()

    fields["price_per_unit"] = _ensure_price(payload.get("price_per_unit"))

    min_stock = payload.get("min_stock")
    fields["min_stock"] = 0 if min_stock is None else ensure_quantity(min_stock, "min_stock")

    balance = payload.get("balance")
    return fields, 0 if balance is None else balance


async def load_or_raise(uow: ItemUnitOfWork, item_no: int, for_update: bool = True) -> Any:
    record = await uow.load(item_no, for_update=for_update)
    if record is None:
        raise ItemNotFoundError(item_no)
    return record


async def apply_intent(
    uow: ItemUnitOfWork,
    item_no: int,
    intent: Intent
) -> Tuple[Any, Quantities, Quantities]:
    """
    对单个库存项执行一次 读取(加锁)-对账-写入

    返回 (原记录, 原数量, 新数量)。原数量在写入前取快照。
    """
    record = await load_or_raise(uow, item_no)
    before = Quantities.of(record)
    try:
        after = reconcile(before, intent)
    except InsufficientStockError as exc:
        raise InsufficientStockError(exc.available, exc.requested, item_no=item_no) from exc
    except LedgerException as exc:
        raise with_context(exc, item_no=item_no)

    await uow.persist(item_no, {"in_qty": after.in_qty, "out_qty": after.out_qty})
    return record, before, after


class ItemService(BaseService):
    """库存项服务"""

    async def get_item(self, item_no: int) -> ServiceResult[Dict[str, Any]]:
        """查询单个库存项"""
        item_no = ensure_item_no(item_no)
        item = await self.execute_with_transaction(self._get_item_tx, item_no)
        return ServiceResult.ok(item)

    async def _get_item_tx(self, uow: ItemUnitOfWork, item_no: int) -> Dict[str, Any]:
        record = await load_or_raise(uow, item_no, for_update=False)
        return project_item(record)

    @bind_operation("create_item")
    async def create_item(self, payload: Dict[str, Any]) -> ServiceResult[Dict[str, Any]]:
        """
        创建库存项

        初始结存即全部入库数量：in_qty = balance，out_qty = 0。
        """
        item = await self.execute_with_transaction(self.create_item_tx, payload)
        self.logger.info("Item created", item_no=item["item_no"], balance=item["balance"])
        self._warn_if_low(item)
        return ServiceResult.ok(item)

    async def create_item_tx(self, uow: ItemUnitOfWork, payload: Dict[str, Any]) -> Dict[str, Any]:
        """事务中的创建逻辑（批量创建复用）"""
        fields, balance = normalize_item_payload(payload)
        initial = reconcile(Quantities(in_qty=0, out_qty=0), SetBalance(balance))

        item_no = await uow.insert({
            **fields,
            "in_qty": initial.in_qty,
            "out_qty": initial.out_qty,
        })
        record = await load_or_raise(uow, item_no, for_update=False)
        return project_item(record)

    @bind_operation("update_item")
    async def update_item(self, item_no: int, payload: Dict[str, Any]) -> ServiceResult[Dict[str, Any]]:
        """
        整体修改库存项

        替换全部描述字段和 min_stock；balance 表示“期望结存”，
        in_qty 按 balance + 现有 out_qty 重新计算，累计出库保持不变。
        请求中的 in_qty 会被忽略。
        """
        item_no = ensure_item_no(item_no)
        item = await self.execute_with_transaction(self._update_item_tx, item_no, payload)
        self.logger.info("Item updated", item_no=item_no, balance=item["balance"])
        self._warn_if_low(item)
        return ServiceResult.ok(item)

    async def _update_item_tx(
        self,
        uow: ItemUnitOfWork,
        item_no: int,
        payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        fields, balance = normalize_item_payload(payload)
        record = await load_or_raise(uow, item_no)
        try:
            after = reconcile(Quantities.of(record), SetBalance(balance))
        except LedgerException as exc:
            raise with_context(exc, item_no=item_no)

        await uow.persist(item_no, {**fields, "in_qty": after.in_qty})
        updated = await load_or_raise(uow, item_no, for_update=False)
        return project_item(updated)

    @bind_operation("delete_item")
    async def delete_item(self, item_no: int) -> ServiceResult[Dict[str, Any]]:
        """删除库存项，返回删除前的快照"""
        item_no = ensure_item_no(item_no)
        snapshot = await self.execute_with_transaction(self._delete_item_tx, item_no)
        self.logger.info("Item deleted", item_no=item_no, item_name=snapshot["item_name"])
        return ServiceResult.ok(snapshot)

    async def _delete_item_tx(self, uow: ItemUnitOfWork, item_no: int) -> Dict[str, Any]:
        record = await load_or_raise(uow, item_no)
        snapshot = project_item(record)
        await uow.delete(item_no)
        return snapshot

    @bind_operation("set_stock")
    async def set_stock(
        self,
        item_no: int,
        balance: Any,
        adjustment_reason: str = "Manual adjustment"
    ) -> ServiceResult[Dict[str, Any]]:
        """直接设定结存（保留累计出库，反推 in_qty）"""
        item_no = ensure_item_no(item_no)
        item, before, after = await self.execute_with_transaction(
            self._mutate_tx, item_no, SetBalance(balance)
        )
        self.logger.info(
            "Stock set",
            item_no=item_no,
            previous_balance=before.balance,
            new_balance=after.balance,
            reason=adjustment_reason
        )
        self._warn_if_low(item)
        return ServiceResult.ok(item, metadata={
            "stock_change": {
                "previous_balance": before.balance,
                "new_balance": after.balance,
                "adjustment_reason": adjustment_reason,
            }
        })

    @bind_operation("insert_stock")
    async def insert_stock(
        self,
        item_no: int,
        quantity: Any,
        reason: str = "Stock insertion"
    ) -> ServiceResult[Dict[str, Any]]:
        """入库"""
        item_no = ensure_item_no(item_no)
        item, before, after = await self.execute_with_transaction(
            self._mutate_tx, item_no, Receive(quantity)
        )
        added = after.in_qty - before.in_qty
        self.logger.info("Stock inserted", item_no=item_no, quantity=added, reason=reason)
        return ServiceResult.ok(item, metadata={
            "stock_change": {
                "previous_balance": before.balance,
                "added_quantity": added,
                "new_balance": after.balance,
            }
        })

    @bind_operation("stock_out")
    async def stock_out(
        self,
        item_no: int,
        quantity: Any,
        notes: Optional[str] = None,
        out_by: Optional[str] = None
    ) -> ServiceResult[Dict[str, Any]]:
        """出库；结存不足时抛出 InsufficientStockError，库存项保持不变"""
        item_no = ensure_item_no(item_no)
        item, before, after = await self.execute_with_transaction(
            self._mutate_tx, item_no, Issue(quantity)
        )
        quantity_out = after.out_qty - before.out_qty
        self.logger.info("Stock issued", item_no=item_no, quantity=quantity_out, out_by=out_by)
        self._warn_if_low(item)
        return ServiceResult.ok(item, metadata={
            "transaction": {
                "quantity_out": quantity_out,
                "previous_balance": before.balance,
                "new_balance": after.balance,
                "notes": notes or None,
                "out_by": out_by or None,
                "timestamp": utcnow_iso(),
            }
        })

    @bind_operation("override_quantities")
    async def override_quantities(
        self,
        item_no: int,
        in_qty: Any = None,
        out_qty: Any = None,
        balance: Any = None,
        update_type: Optional[str] = None,
        notes: Optional[str] = None,
        updated_by: Optional[str] = None
    ) -> ServiceResult[Dict[str, Any]]:
        """
        数量覆盖

        update_type: set_balance | adjust_in | adjust_out；缺省或未知时按 direct 处理。
        至少提供 in_qty、out_qty、balance 之一。
        """
        item_no = ensure_item_no(item_no)
        intent = build_override_intent(update_type, in_qty=in_qty, out_qty=out_qty, balance=balance)
        item, before, after = await self.execute_with_transaction(self._mutate_tx, item_no, intent)

        self.logger.info(
            "Item quantities overridden",
            item_no=item_no,
            update_type=update_type or "manual",
            previous=before.as_dict(),
            updated=after.as_dict(),
            updated_by=updated_by
        )
        self._warn_if_low(item)
        return ServiceResult.ok(item, metadata={
            "changes": {
                "previous": before.as_dict(),
                "updated": after.as_dict(),
                "update_type": update_type or "manual",
                "notes": notes or None,
                "updated_by": updated_by or None,
                "timestamp": utcnow_iso(),
            }
        })

    async def _mutate_tx(
        self,
        uow: ItemUnitOfWork,
        item_no: int,
        intent: Intent
    ) -> Tuple[Dict[str, Any], Quantities, Quantities]:
        """事务中的库存变更：对账、写入、重新读取"""
        _, before, after = await apply_intent(uow, item_no, intent)
        updated = await load_or_raise(uow, item_no, for_update=False)
        return project_item(updated), before, after

    def _warn_if_low(self, item: Dict[str, Any]) -> None:
        if item["item_status"] != STATUS_IN_STOCK:
            self.logger.warning(
                "Item below minimum stock",
                item_no=item["item_no"],
                balance=item["balance"],
                min_stock=item["min_stock"],
                item_status=item["item_status"]
            )
