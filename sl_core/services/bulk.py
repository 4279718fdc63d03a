"""
批量创建服务

逐行独立校验、独立事务插入。某一行失败只记录错误，不影响已提交的行，也不中断后续行；
这是有意为之的非原子操作，调用方依赖逐行的成功/失败报告。
"""
import asyncio
from typing import Any, Dict, List

from sl_core.utils.errors import LedgerException, ValidationError
from sl_core.utils.logger import bind_operation
from .base import BaseService, ServiceResult
from .items import ItemService


class BulkCreateService(BaseService):
    """批量创建服务"""

    @bind_operation("bulk_create")
    async def bulk_create(self, items: List[Any]) -> ServiceResult[Dict[str, Any]]:
        if not isinstance(items, list) or not items:
            raise ValidationError(code="EMPTY_BULK_ITEMS", detail="Items array is required")

        item_service = ItemService(self.store)
        created_items: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []

        for index, payload in enumerate(items):
            try:
                item = await self.execute_with_transaction(item_service.create_item_tx, payload)
            except LedgerException as exc:
                errors.append({
                    "index": index,
                    "error": exc.detail or exc.title,
                    "code": exc.code,
                    "item": payload,
                })
                self.logger.warning("Bulk row rejected", index=index, code=exc.code)
                continue
            except asyncio.CancelledError:
                # 当前行的事务已回滚；之前的行保持已提交
                self.logger.warning(
                    "Bulk create cancelled",
                    processed=index,
                    successful=len(created_items),
                    failed=len(errors)
                )
                raise

            created_items.append(item)

        self.logger.info(
            "Bulk create finished",
            total_attempted=len(items),
            successful=len(created_items),
            failed=len(errors)
        )

        return ServiceResult.ok({
            "created_items": created_items,
            "errors": errors,
            "summary": {
                "total_attempted": len(items),
                "successful": len(created_items),
                "failed": len(errors),
            },
        })
