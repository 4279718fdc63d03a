"""
出库结算服务
一批出库请求在同一个事务中按顺序执行，全部成功才提交，任一失败整批回滚
"""
from typing import Any, Dict, List, Optional

from sl_core.ledger.reconciliation import Issue, ensure_quantity
from sl_core.ledger.store import ItemUnitOfWork
from sl_core.utils.errors import LedgerException, ValidationError, with_context
from sl_core.utils.logger import bind_operation
from .base import BaseService, ServiceResult
from .items import apply_intent, ensure_item_no, utcnow_iso


class CheckoutService(BaseService):
    """出库结算服务"""

    @bind_operation("checkout")
    async def checkout(
        self,
        items: List[Dict[str, Any]],
        checkout_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> ServiceResult[Dict[str, Any]]:
        """批量出库（全有或全无）"""
        lines = self._validate_lines(items)
        timestamp = utcnow_iso()

        try:
            results = await self.execute_with_transaction(self._checkout_tx, lines)
        except LedgerException as exc:
            self.logger.warning(
                "Checkout rolled back",
                code=exc.code,
                item_no=exc.extra.get("item_no"),
                line_index=exc.extra.get("line_index"),
                lines=len(lines)
            )
            raise

        self.logger.info(
            "Checkout committed",
            lines=len(results),
            total_quantity=sum(r["quantity_checked_out"] for r in results),
            checkout_by=checkout_by
        )

        return ServiceResult.ok({
            "checkout_timestamp": timestamp,
            "checkout_by": checkout_by or None,
            "notes": notes or None,
            "items": results,
        })

    def _validate_lines(self, items: Any) -> List[Dict[str, int]]:
        """在进入事务前校验整批请求"""
        if not isinstance(items, list) or not items:
            raise ValidationError(
                code="EMPTY_CHECKOUT",
                detail="Invalid input: items array is required and cannot be empty"
            )

        lines = []
        for index, line in enumerate(items):
            if not isinstance(line, dict):
                raise ValidationError(
                    code="INVALID_CHECKOUT_LINE",
                    detail=f"Checkout line {index} must be an object",
                    line_index=index
                )
            try:
                self.validate_required_fields(line, ["item_no", "quantity"])
                lines.append({
                    "item_no": ensure_item_no(line["item_no"]),
                    "quantity": ensure_quantity(line["quantity"], "quantity", positive=True),
                })
            except LedgerException as exc:
                raise with_context(exc, line_index=index, item_no=line.get("item_no"))

        return lines

    async def _checkout_tx(
        self,
        uow: ItemUnitOfWork,
        lines: List[Dict[str, int]]
    ) -> List[Dict[str, Any]]:
        """事务中的出库逻辑：按请求顺序逐项扣减"""
        results = []
        for index, line in enumerate(lines):
            item_no = line["item_no"]
            try:
                record, before, after = await apply_intent(uow, item_no, Issue(line["quantity"]))
            except LedgerException as exc:
                raise with_context(exc, line_index=index)

            results.append({
                "item_no": item_no,
                "item_name": record.item_name,
                "quantity_checked_out": after.out_qty - before.out_qty,
                "previous_balance": before.balance,
                "new_balance": after.balance,
            })

        return results
