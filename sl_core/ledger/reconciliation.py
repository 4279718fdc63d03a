"""
数量对账引擎

根据当前 (in_qty, out_qty) 和一个更新意图计算新的一致数量状态。
纯函数，不做任何 I/O；所有写路径都必须经过 reconcile()，
这里是“结存不得为负”这条约束唯一的执行点。
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from sl_core.utils.errors import InsufficientStockError, InvalidQuantityError


@dataclass(frozen=True)
class Quantities:
    """一组一致的数量状态"""
    in_qty: int
    out_qty: int

    @property
    def balance(self) -> int:
        return self.in_qty - self.out_qty

    def as_dict(self) -> dict:
        return {"in_qty": self.in_qty, "out_qty": self.out_qty, "balance": self.balance}

    @classmethod
    def of(cls, record: Any) -> "Quantities":
        return cls(in_qty=record.in_qty or 0, out_qty=record.out_qty or 0)


class UpdateType(str, Enum):
    """数量覆盖操作的子类型"""
    SET_BALANCE = "set_balance"
    ADJUST_IN = "adjust_in"
    ADJUST_OUT = "adjust_out"
    DIRECT = "direct"


@dataclass(frozen=True)
class SetBalance:
    """结存为主：in_qty 由 out_qty + balance 反推"""
    balance: Any


@dataclass(frozen=True)
class AdjustIn:
    in_qty: Any


@dataclass(frozen=True)
class AdjustOut:
    out_qty: Any


@dataclass(frozen=True)
class Direct:
    """任意组合；未提供的字段保留原值，提供 balance 时以 balance 为准"""
    in_qty: Any = None
    out_qty: Any = None
    balance: Any = None


@dataclass(frozen=True)
class Receive:
    """入库"""
    quantity: Any


@dataclass(frozen=True)
class Issue:
    """出库"""
    quantity: Any


Intent = Union[SetBalance, AdjustIn, AdjustOut, Direct, Receive, Issue]

# 与 items 表的 Integer 列一致
MAX_QUANTITY = 2**31 - 1

_FIELD_LABELS = {
    "balance": "Balance",
    "in_qty": "In quantity",
    "out_qty": "Out quantity",
    "quantity": "Quantity",
    "min_stock": "Minimum stock",
}


def ensure_quantity(value: Any, field: str, *, positive: bool = False) -> int:
    """
    校验并规范化数量值

    接受整数以及整数值的 float/Decimal（如 5.0）；拒绝布尔值、字符串、None、
    小数部分非零的数、负数以及超过 MAX_QUANTITY 的数，positive=True 时还拒绝 0。
    """
    label = _FIELD_LABELS.get(field, field)

    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(field, f"{label} must be a number")

    if isinstance(value, int):
        number = value
    elif isinstance(value, (float, Decimal)):
        finite = value.is_finite() if isinstance(value, Decimal) else math.isfinite(value)
        if not finite:
            raise InvalidQuantityError(field, f"{label} must be a finite number")
        if value != int(value):
            raise InvalidQuantityError(field, f"{label} must be a whole number")
        number = int(value)
    else:
        raise InvalidQuantityError(field, f"{label} must be a number")

    if positive and number <= 0:
        raise InvalidQuantityError(field, f"{label} must be a positive number")
    if number < 0:
        raise InvalidQuantityError(field, f"{label} cannot be negative")
    if number > MAX_QUANTITY:
        raise InvalidQuantityError(field, f"{label} cannot exceed {MAX_QUANTITY}")
    return number


def _guard(result: Quantities) -> Quantities:
    if result.balance < 0:
        raise InvalidQuantityError(
            "balance",
            "Calculated balance would be negative. Please check your quantities."
        )
    if result.in_qty > MAX_QUANTITY or result.out_qty > MAX_QUANTITY:
        raise InvalidQuantityError(
            "quantity",
            f"Resulting quantities cannot exceed {MAX_QUANTITY}"
        )
    return result


def reconcile(current: Quantities, intent: Intent) -> Quantities:
    """根据意图计算新的数量状态；任何会导致结存为负的意图在写入前被拒绝"""
    if isinstance(intent, Receive):
        quantity = ensure_quantity(intent.quantity, "quantity", positive=True)
        return _guard(Quantities(current.in_qty + quantity, current.out_qty))

    if isinstance(intent, Issue):
        quantity = ensure_quantity(intent.quantity, "quantity", positive=True)
        if current.balance < quantity:
            raise InsufficientStockError(available=current.balance, requested=quantity)
        return _guard(Quantities(current.in_qty, current.out_qty + quantity))

    if isinstance(intent, SetBalance):
        balance = ensure_quantity(intent.balance, "balance")
        return _guard(Quantities(current.out_qty + balance, current.out_qty))

    if isinstance(intent, AdjustIn):
        in_qty = ensure_quantity(intent.in_qty, "in_qty")
        return _guard(Quantities(in_qty, current.out_qty))

    if isinstance(intent, AdjustOut):
        out_qty = ensure_quantity(intent.out_qty, "out_qty")
        return _guard(Quantities(current.in_qty, out_qty))

    if isinstance(intent, Direct):
        in_qty = current.in_qty if intent.in_qty is None else ensure_quantity(intent.in_qty, "in_qty")
        out_qty = current.out_qty if intent.out_qty is None else ensure_quantity(intent.out_qty, "out_qty")
        if intent.balance is not None:
            in_qty = out_qty + ensure_quantity(intent.balance, "balance")
        return _guard(Quantities(in_qty, out_qty))

    raise TypeError(f"Unsupported reconciliation intent: {intent!r}")


def build_override_intent(
    update_type: Optional[str],
    in_qty: Any = None,
    out_qty: Any = None,
    balance: Any = None,
) -> Intent:
    """
    根据 update_type 选择数量覆盖的子意图

    指定的类型缺少对应字段时（例如 adjust_in 但没有 in_qty），按 direct 处理。
    """
    if in_qty is None and out_qty is None and balance is None:
        raise InvalidQuantityError(
            "quantities",
            "At least one quantity field (in_qty, out_qty, or balance) must be provided"
        )

    if update_type == UpdateType.SET_BALANCE.value and balance is not None:
        return SetBalance(balance)
    if update_type == UpdateType.ADJUST_IN.value and in_qty is not None:
        return AdjustIn(in_qty)
    if update_type == UpdateType.ADJUST_OUT.value and out_qty is not None:
        return AdjustOut(out_qty)
    return Direct(in_qty=in_qty, out_qty=out_qty, balance=balance)
