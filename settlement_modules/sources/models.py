"""
Source Record Models.

Read-only snapshots of the externally owned financial records a payment
request points at: purchase orders (with their option / labor cost items)
and packing-list shipments.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from settlement_kernel.db.types import ZERO
from settlement_kernel.logging_config import get_logger

logger = get_logger("modules.sources.models")


class CostItemType(Enum):
    """Kind of per-order cost item."""
    OPTION = "option"
    LABOR = "labor"


@dataclass(frozen=True)
class CostItem:
    """An option or labor cost line on a purchase order."""
    id: UUID
    item_type: CostItemType
    name: str
    unit_price: Decimal = Decimal("0")
    quantity: Decimal = Decimal("0")
    cost: Decimal = Decimal("0")
    is_admin_only: bool = False  # billed to the managing admin


def _sum_cost(items) -> Decimal:
    return sum((item.cost for item in items), ZERO)


@dataclass(frozen=True)
class PurchaseOrderRecord:
    """Financial fields of a purchase order, as read through the gateway."""
    id: UUID
    po_number: str
    product_name: str = ""
    order_date: date | None = None
    unit_price: Decimal = Decimal("0")
    back_margin: Decimal = Decimal("0")
    quantity: Decimal = Decimal("0")
    commission_rate: Decimal = Decimal("0")
    advance_payment_rate: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    warehouse_shipping_cost: Decimal = Decimal("0")
    packing_list_shipping_cost: Decimal = Decimal("0")
    advance_payment_amount: Decimal = Decimal("0")
    advance_payment_date: date | None = None
    balance_payment_amount: Decimal = Decimal("0")
    balance_payment_date: date | None = None
    admin_total_cost: Decimal | None = None
    admin_cost_paid: bool = False
    admin_cost_paid_date: date | None = None
    cost_items: tuple[CostItem, ...] = field(default_factory=tuple)
    created_at: datetime | None = None

    @property
    def option_items(self) -> tuple[CostItem, ...]:
        return tuple(i for i in self.cost_items if i.item_type is CostItemType.OPTION)

    @property
    def labor_items(self) -> tuple[CostItem, ...]:
        return tuple(i for i in self.cost_items if i.item_type is CostItemType.LABOR)

    @property
    def option_cost(self) -> Decimal:
        """All option items, admin-only included."""
        return _sum_cost(self.option_items)

    @property
    def labor_cost(self) -> Decimal:
        """All labor items, admin-only included."""
        return _sum_cost(self.labor_items)

    @property
    def non_admin_option_cost(self) -> Decimal:
        return _sum_cost(i for i in self.option_items if not i.is_admin_only)

    @property
    def non_admin_labor_cost(self) -> Decimal:
        return _sum_cost(i for i in self.labor_items if not i.is_admin_only)

    @property
    def admin_items_cost(self) -> Decimal:
        return _sum_cost(i for i in self.cost_items if i.is_admin_only)

    @property
    def back_margin_total(self) -> Decimal:
        return self.back_margin * self.quantity

    @property
    def admin_billable_amount(self) -> Decimal:
        """
        Amount owed to the managing admin for this order.

        An explicitly stored ``admin_total_cost`` wins; otherwise it is
        back margin times quantity plus the admin-only cost items.
        """
        if self.admin_total_cost is not None:
            return self.admin_total_cost
        return self.back_margin_total + self.admin_items_cost


@dataclass(frozen=True)
class PackingListRecord:
    """Financial fields of a packing-list shipment."""
    id: UUID
    code: str
    logistics_company: str | None = None
    shipment_date: date | None = None
    shipping_cost: Decimal = Decimal("0")
    calculated_weight: Decimal = Decimal("0")
    actual_weight: Decimal = Decimal("0")
    weight_ratio: Decimal | None = None
    wk_payment_date: date | None = None
    admin_cost_paid: bool = False
    admin_cost_paid_date: date | None = None
    created_at: datetime | None = None
