"""
库存台账核心：派生字段规则与数量对账引擎

存储接口位于 sl_core.ledger.store（依赖数据库层，需显式导入）。
"""
from .derived import (
    ITEM_STATUSES,
    STATUS_IN_STOCK,
    STATUS_LOW_IN_STOCK,
    STATUS_OUT_OF_STOCK,
    project_item,
)
from .reconciliation import (
    AdjustIn,
    AdjustOut,
    Direct,
    Issue,
    Quantities,
    Receive,
    SetBalance,
    UpdateType,
    build_override_intent,
    ensure_quantity,
    reconcile,
)

__all__ = [
    "ITEM_STATUSES",
    "STATUS_IN_STOCK",
    "STATUS_LOW_IN_STOCK",
    "STATUS_OUT_OF_STOCK",
    "project_item",
    "AdjustIn",
    "AdjustOut",
    "Direct",
    "Issue",
    "Quantities",
    "Receive",
    "SetBalance",
    "UpdateType",
    "build_override_intent",
    "ensure_quantity",
    "reconcile",
]
