"""
基础服务类
"""
from typing import TypeVar, Generic, Optional, Dict, Any, List
from dataclasses import dataclass
from abc import ABC

from sl_core.ledger.store import ItemStore, ItemUnitOfWork, get_item_store
from sl_core.utils.logger import get_logger
from sl_core.utils.errors import ValidationError

T = TypeVar('T')


@dataclass
class ServiceResult(Generic[T]):
    """服务执行结果"""
    success: bool
    data: Optional[T] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ServiceResult[T]":
        """成功结果"""
        return cls(success=True, data=data, metadata=metadata)


class BaseService(ABC):
    """基础服务类：持有注入的存储能力"""

    def __init__(self, store: Optional[ItemStore] = None):
        self.store = store or get_item_store()
        self.logger = get_logger(self.__class__.__name__)

    async def execute_with_transaction(
        self,
        operation,
        *args,
        **kwargs
    ) -> Any:
        """在一个存储事务中执行操作；operation 的第一个参数是工作单元"""
        uow: ItemUnitOfWork
        async with self.store.transaction() as uow:
            return await operation(uow, *args, **kwargs)

    def validate_required_fields(self, data: Dict[str, Any], required_fields: List[str]) -> None:
        """验证必填字段"""
        missing_fields = []
        for field in required_fields:
            if field not in data or data[field] is None:
                missing_fields.append(field)

        if missing_fields:
            raise ValidationError(
                code="MISSING_REQUIRED_FIELDS",
                detail=f"Missing required fields: {', '.join(missing_fields)}"
            )
