"""
库存台账数据模型

只存储累计入库 in_qty 与累计出库 out_qty；结存、金额、缺口、状态都是派生字段，
Python 侧与 SQL 侧各有一份等价表达式（hybrid_property），用于过滤和排序。
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Integer, Text, DateTime, Numeric,
    CheckConstraint, Index, case, func
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from sl_core.ledger.derived import (
    derive_balance, derive_cost, derive_deficit, derive_status,
    STATUS_OUT_OF_STOCK, STATUS_LOW_IN_STOCK, STATUS_IN_STOCK,
)
from .base import Base


class Item(Base):
    """库存项（台账记录）"""
    __tablename__ = "items"

    # 主键：创建时分配，永不复用
    item_no: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 描述信息
    item_name: Mapped[str] = mapped_column(Text, nullable=False, comment="物品名称")
    brand: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="品牌")
    item_type: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="类别")
    location: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="存放位置")
    unit_of_measure: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="计量单位")
    supplier: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="供应商")
    last_po: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="最近采购单号")

    price_per_unit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        CheckConstraint("price_per_unit >= 0", name="ck_items_price_non_negative"),
        nullable=False,
        default=Decimal("0"),
        comment="单价"
    )

    # 数量状态
    in_qty: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("in_qty >= 0", name="ck_items_in_qty_non_negative"),
        nullable=False,
        default=0,
        comment="累计入库数量"
    )
    out_qty: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("out_qty >= 0", name="ck_items_out_qty_non_negative"),
        nullable=False,
        default=0,
        comment="累计出库数量"
    )
    min_stock: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("min_stock >= 0", name="ck_items_min_stock_non_negative"),
        nullable=False,
        default=0,
        comment="安全库存"
    )

    # 时间戳
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="最后更新时间"
    )

    __table_args__ = (
        # 结存不得为负
        CheckConstraint("in_qty >= out_qty", name="ck_items_balance_non_negative"),
        Index("ix_items_name", "item_name"),
        Index("ix_items_type", "item_type"),
        Index("ix_items_location", "location"),
        Index("ix_items_supplier", "supplier"),
        {"sqlite_autoincrement": True},
    )

    # ---- 派生字段 ----

    @hybrid_property
    def balance(self) -> int:
        return derive_balance(self.in_qty, self.out_qty)

    @balance.inplace.expression
    @classmethod
    def _balance_expression(cls):
        return cls.in_qty - cls.out_qty

    @hybrid_property
    def deficit(self) -> int:
        return derive_deficit(self.balance, self.min_stock)

    @deficit.inplace.expression
    @classmethod
    def _deficit_expression(cls):
        return case(
            (cls.min_stock > cls.in_qty - cls.out_qty, cls.min_stock - (cls.in_qty - cls.out_qty)),
            else_=0
        )

    @hybrid_property
    def cost(self) -> Decimal:
        return derive_cost(self.balance, self.price_per_unit)

    @cost.inplace.expression
    @classmethod
    def _cost_expression(cls):
        return (cls.in_qty - cls.out_qty) * cls.price_per_unit

    @hybrid_property
    def item_status(self) -> str:
        return derive_status(self.balance, self.min_stock)

    @item_status.inplace.expression
    @classmethod
    def _item_status_expression(cls):
        balance = cls.in_qty - cls.out_qty
        return case(
            (balance <= 0, STATUS_OUT_OF_STOCK),
            (balance < cls.min_stock, STATUS_LOW_IN_STOCK),
            else_=STATUS_IN_STOCK
        )

    def __repr__(self) -> str:
        return f"<Item item_no={self.item_no} name={self.item_name!r} in={self.in_qty} out={self.out_qty}>"
