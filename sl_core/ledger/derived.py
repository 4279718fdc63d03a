"""
库存派生字段规则

balance / cost / deficit / item_status 都由 (in_qty, out_qty, min_stock, price_per_unit)
在读取时计算，从不单独存储。
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

STATUS_OUT_OF_STOCK = "Out Of Stock"
STATUS_LOW_IN_STOCK = "Low In Stock"
STATUS_IN_STOCK = "In Stock"

ITEM_STATUSES = (STATUS_OUT_OF_STOCK, STATUS_LOW_IN_STOCK, STATUS_IN_STOCK)

# 描述性字段：对台账逻辑不透明
DESCRIPTIVE_FIELDS = (
    "item_name",
    "brand",
    "item_type",
    "location",
    "unit_of_measure",
    "supplier",
    "last_po",
)

MONEY_QUANT = Decimal("0.01")


def derive_balance(in_qty: int, out_qty: int) -> int:
    return in_qty - out_qty


def derive_deficit(balance: int, min_stock: int) -> int:
    """低于安全库存的缺口，达到或超过阈值时为 0"""
    return max(0, min_stock - balance)


def derive_status(balance: int, min_stock: int) -> str:
    if balance <= 0:
        return STATUS_OUT_OF_STOCK
    if balance < min_stock:
        return STATUS_LOW_IN_STOCK
    return STATUS_IN_STOCK


def to_money(value: Any) -> Decimal:
    """统一金额精度（两位小数）"""
    if value is None:
        return Decimal("0").quantize(MONEY_QUANT)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def derive_cost(balance: int, price_per_unit: Any) -> Decimal:
    return to_money(Decimal(balance) * to_money(price_per_unit))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def project_item(record: Any) -> Dict[str, Any]:
    """
    生成库存项的完整对外视图（描述字段 + 数量 + 派生字段）

    record 只需提供属性访问，ORM 对象和测试用的内存记录都适用。
    """
    in_qty = record.in_qty or 0
    out_qty = record.out_qty or 0
    min_stock = record.min_stock or 0
    balance = derive_balance(in_qty, out_qty)

    data: Dict[str, Any] = {"item_no": record.item_no}
    for field in DESCRIPTIVE_FIELDS:
        data[field] = getattr(record, field, None)

    data.update({
        "in_qty": in_qty,
        "out_qty": out_qty,
        "balance": balance,
        "min_stock": min_stock,
        "deficit": derive_deficit(balance, min_stock),
        "price_per_unit": str(to_money(record.price_per_unit)),
        "cost": str(derive_cost(balance, record.price_per_unit)),
        "item_status": derive_status(balance, min_stock),
        "created_at": _iso(getattr(record, "created_at", None)),
        "updated_at": _iso(getattr(record, "updated_at", None)),
    })
    return data
