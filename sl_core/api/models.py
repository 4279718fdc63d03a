"""
API 请求/响应模型

数量字段使用宽松类型，由服务层统一校验并返回带错误码的 422
"""
from typing import Any, Dict, List, Optional, Generic, TypeVar
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""
    ok: bool = Field(description="操作是否成功")
    data: Optional[T] = Field(default=None, description="响应数据")
    error: Optional[Dict[str, Any]] = Field(default=None, description="错误信息（RFC7807 Problem Details）")
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="元数据")

    @classmethod
    def success(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ApiResponse[T]":
        """创建成功响应"""
        return cls(ok=True, data=data, metadata=metadata)


class Pagination(BaseModel):
    """分页信息"""
    total: int = Field(description="总数量")
    limit: int = Field(description="每页大小")
    offset: int = Field(description="偏移量")
    pages: int = Field(description="总页数")
    current_page: int = Field(description="当前页")


class ItemListResponse(BaseModel):
    """库存列表响应"""
    items: List[Dict[str, Any]]
    pagination: Pagination
    filters: Dict[str, Any]
    statistics: Dict[str, Any]


# 库存项
class ItemPayload(BaseModel):
    """创建/修改库存项请求（in_qty 会被忽略）"""
    model_config = ConfigDict(extra="ignore")

    item_name: Optional[str] = Field(default=None, description="名称（必填）")
    brand: Optional[str] = None
    item_type: Optional[str] = None
    location: Optional[str] = None
    unit_of_measure: Optional[str] = None
    supplier: Optional[str] = None
    last_po: Optional[str] = None
    price_per_unit: Any = Field(default=None, description="单价")
    min_stock: Any = Field(default=None, description="最低库存")
    balance: Any = Field(default=None, description="期望结存")


# 库存变更
class StockSetRequest(BaseModel):
    """设定结存"""
    balance: Any = Field(default=None, description="新结存（非负整数）")
    adjustment_reason: Optional[str] = Field(default=None, description="调整原因")


class StockInsertRequest(BaseModel):
    """入库"""
    quantity: Any = Field(default=None, description="入库数量（正整数）")
    reason: Optional[str] = Field(default=None, description="入库原因")


class StockOutRequest(BaseModel):
    """出库"""
    quantity: Any = Field(default=None, description="出库数量（正整数）")
    notes: Optional[str] = None
    out_by: Optional[str] = None


class QuantityOverrideRequest(BaseModel):
    """数量覆盖"""
    in_qty: Any = None
    out_qty: Any = None
    balance: Any = None
    update_type: Optional[str] = Field(default=None, description="set_balance | adjust_in | adjust_out")
    notes: Optional[str] = None
    updated_by: Optional[str] = None


# 批量
class CheckoutRequest(BaseModel):
    """出库结算请求"""
    items: List[Any] = Field(default_factory=list, description="[{item_no, quantity}]")
    checkout_by: Optional[str] = None
    notes: Optional[str] = None


class BulkCreateRequest(BaseModel):
    """批量创建请求"""
    items: List[Any] = Field(default_factory=list, description="库存项列表")
