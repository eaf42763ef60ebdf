"""
SQLAlchemy ORM persistence models for source financial records.

Responsibility
--------------
Persist the purchase-order and packing-list fields that settlement reads
and writes back: pricing, cost items, installment amounts and payment
dates, admin-cost flags, shipping weights.

Architecture position
---------------------
**Modules layer** -- ORM models read and written only through
``SqlSourceRecordGateway``.  Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* ``po_number`` and packing-list ``code`` are unique.
* ``CostItemModel`` belongs to exactly one ``PurchaseOrderModel``.
* Payment dates are calendar ``Date`` columns (no time of day).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.db.types import Rate

# ---------------------------------------------------------------------------
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    Financial fields of a purchase order.

    Maps to the ``PurchaseOrderRecord`` DTO in
    ``settlement_modules.sources.models``.

    Guarantees:
        - ``advance_payment_date`` / ``balance_payment_date`` are the sole
          record of whether an installment has been paid.
        - ``admin_cost_paid_date`` is set iff ``admin_cost_paid`` is true.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_purchase_order_date", "order_date"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    order_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    back_margin: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    commission_rate: Mapped[Rate] = mapped_column(default=Decimal("0"))
    advance_payment_rate: Mapped[Rate] = mapped_column(default=Decimal("0"))

    shipping_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    warehouse_shipping_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    # Share of packing-list shipping attributed to this order
    packing_list_shipping_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    advance_payment_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    advance_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    balance_payment_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    balance_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    admin_total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    admin_cost_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_cost_paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    cost_items: Mapped[list["CostItemModel"]] = relationship(
        "CostItemModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CostItemModel.display_order",
    )

    def to_dto(self):
        from settlement_modules.sources.models import PurchaseOrderRecord

        return PurchaseOrderRecord(
            id=self.id,
            po_number=self.po_number,
            product_name=self.product_name,
            order_date=self.order_date,
            unit_price=self.unit_price,
            back_margin=self.back_margin,
            quantity=self.quantity,
            commission_rate=self.commission_rate,
            advance_payment_rate=self.advance_payment_rate,
            shipping_cost=self.shipping_cost,
            warehouse_shipping_cost=self.warehouse_shipping_cost,
            packing_list_shipping_cost=self.packing_list_shipping_cost,
            advance_payment_amount=self.advance_payment_amount,
            advance_payment_date=self.advance_payment_date,
            balance_payment_amount=self.balance_payment_amount,
            balance_payment_date=self.balance_payment_date,
            admin_total_cost=self.admin_total_cost,
            admin_cost_paid=self.admin_cost_paid,
            admin_cost_paid_date=self.admin_cost_paid_date,
            cost_items=tuple(item.to_dto() for item in self.cost_items),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number}>"


# ---------------------------------------------------------------------------
# CostItemModel
# ---------------------------------------------------------------------------


class CostItemModel(TrackedBase):
    """
    An option or labor cost line on a purchase order.

    Guarantees:
        - ``item_type`` is ``option`` or ``labor``.
        - ``is_admin_only`` items are billed to the admin and excluded from
          the commission base.
    """

    __tablename__ = "purchase_order_cost_items"

    __table_args__ = (
        Index("idx_cost_item_order", "purchase_order_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False,
    )
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_admin_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="cost_items",
    )

    def to_dto(self):
        from settlement_modules.sources.models import CostItem, CostItemType

        return CostItem(
            id=self.id,
            item_type=CostItemType(self.item_type),
            name=self.name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            cost=self.cost,
            is_admin_only=self.is_admin_only,
        )

    def __repr__(self) -> str:
        return f"<CostItemModel {self.item_type} {self.name}>"


# ---------------------------------------------------------------------------
# PackingListModel
# ---------------------------------------------------------------------------


class PackingListModel(TrackedBase):
    """
    Financial fields of a packing-list shipment.

    Maps to the ``PackingListRecord`` DTO.

    Guarantees:
        - ``wk_payment_date`` is the sole record of whether the shipping fee
          has been paid.
    """

    __tablename__ = "packing_lists"

    __table_args__ = (
        UniqueConstraint("code", name="uq_packing_list_code"),
        Index("idx_packing_list_shipment_date", "shipment_date"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    logistics_company: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    shipping_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    calculated_weight: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_weight: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    weight_ratio: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    wk_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    admin_cost_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_cost_paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self):
        from settlement_modules.sources.models import PackingListRecord

        return PackingListRecord(
            id=self.id,
            code=self.code,
            logistics_company=self.logistics_company,
            shipment_date=self.shipment_date,
            shipping_cost=self.shipping_cost,
            calculated_weight=self.calculated_weight,
            actual_weight=self.actual_weight,
            weight_ratio=self.weight_ratio,
            wk_payment_date=self.wk_payment_date,
            admin_cost_paid=self.admin_cost_paid,
            admin_cost_paid_date=self.admin_cost_paid_date,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<PackingListModel {self.code}>"
