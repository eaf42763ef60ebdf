"""
Payment Request Domain Models.

The nouns of settlement: payment requests, the (source, payment type) key
they settle, listing filters, and the read-only payment-history views the
dashboard renders.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from settlement_kernel.exceptions import InvalidPaymentTypeError, MalformedDateError
from settlement_kernel.logging_config import get_logger
from settlement_modules.sources.models import PackingListRecord, PurchaseOrderRecord

logger = get_logger("modules.payments.models")


class SourceType(Enum):
    """Kind of external record a request settles."""
    PURCHASE_ORDER = "purchase_order"
    PACKING_LIST = "packing_list"


class PaymentType(Enum):
    """Which amount on the source record is being paid."""
    ADVANCE = "advance"  # first installment, purchase orders
    BALANCE = "balance"  # second installment, purchase orders
    SHIPPING = "shipping"  # packing-list shipping fee


class PaymentRequestStatus(Enum):
    """Payment request lifecycle states."""
    REQUESTED = "requested"
    COMPLETED = "completed"


def payment_types_for(source_type: SourceType) -> tuple[PaymentType, ...]:
    """Payment types that apply to a source type."""
    match source_type:
        case SourceType.PURCHASE_ORDER:
            return (PaymentType.ADVANCE, PaymentType.BALANCE)
        case SourceType.PACKING_LIST:
            return (PaymentType.SHIPPING,)


@dataclass(frozen=True)
class PaymentKey:
    """
    Identity of one payable amount: (source type, source id, payment type).

    At most one Requested payment request may exist per key.
    """
    source_type: SourceType
    source_id: UUID
    payment_type: PaymentType

    def __post_init__(self) -> None:
        if self.payment_type not in payment_types_for(self.source_type):
            raise InvalidPaymentTypeError(
                self.source_type.value, self.payment_type.value,
            )


@dataclass(frozen=True)
class PaymentRequest:
    """A request to pay one amount on one source record."""
    id: UUID
    request_number: str
    source_type: SourceType
    source_id: UUID
    payment_type: PaymentType
    amount: Decimal
    status: PaymentRequestStatus
    request_date: date
    requested_by: UUID
    payment_date: date | None = None
    completed_by: UUID | None = None
    memo: str | None = None
    version: int = 1
    created_at: datetime | None = None

    @property
    def key(self) -> PaymentKey:
        return PaymentKey(self.source_type, self.source_id, self.payment_type)

    @property
    def is_requested(self) -> bool:
        return self.status is PaymentRequestStatus.REQUESTED

    @property
    def is_completed(self) -> bool:
        return self.status is PaymentRequestStatus.COMPLETED


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-date range; either bound may be open."""
    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and (
                isinstance(value, datetime) or not isinstance(value, date)
            ):
                raise MalformedDateError(str(value), field_name=f"date_range.{name}")

    def contains(self, day: date | None) -> bool:
        if day is None:
            return False
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(frozen=True)
class RequestFilter:
    """Filter for listing payment requests.  Unset fields match everything."""
    status: PaymentRequestStatus | None = None
    source_type: SourceType | None = None
    payment_type: PaymentType | None = None
    date_range: DateRange | None = None
    search: str | None = None


# -----------------------------------------------------------------------------
# Payment history views
# -----------------------------------------------------------------------------


class HistoryType(Enum):
    """Which source records the payment history covers."""
    PURCHASE_ORDERS = "purchase_orders"
    PACKING_LISTS = "packing_lists"


class HistoryStatus(Enum):
    """Payment-history status filter."""
    ALL = "all"
    PAID = "paid"
    PENDING = "pending"


class AmountStatus(Enum):
    """Whether one amount on a source record has been paid."""
    PAID = "paid"
    PENDING = "pending"


@dataclass(frozen=True)
class PaymentHistoryFilter:
    type: HistoryType | None = None  # None = both
    status: HistoryStatus = HistoryStatus.ALL
    date_range: DateRange | None = None
    search: str | None = None


@dataclass(frozen=True)
class PaymentLine:
    """One payable amount on a source record and its request state."""
    payment_type: PaymentType
    amount: Decimal
    payment_date: date | None = None
    active_request: PaymentRequest | None = None

    @property
    def status(self) -> AmountStatus:
        return AmountStatus.PAID if self.payment_date is not None else AmountStatus.PENDING


@dataclass(frozen=True)
class PurchaseOrderPaymentView:
    """Purchase order joined with its settlement amounts and request state."""
    record: PurchaseOrderRecord
    advance: PaymentLine
    balance: PaymentLine
    final_payment_amount: Decimal
    expected_final_unit_price: Decimal
    admin_cost_amount: Decimal
    source_type: SourceType = field(default=SourceType.PURCHASE_ORDER, init=False)

    @property
    def lines(self) -> tuple[PaymentLine, ...]:
        return (self.advance, self.balance)

    @property
    def sort_date(self) -> date | None:
        return self.record.order_date


@dataclass(frozen=True)
class PackingListPaymentView:
    """Packing list joined with its shipping payment and request state."""
    record: PackingListRecord
    shipping: PaymentLine
    shipping_cost_difference: Decimal
    source_type: SourceType = field(default=SourceType.PACKING_LIST, init=False)

    @property
    def lines(self) -> tuple[PaymentLine, ...]:
        return (self.shipping,)

    @property
    def sort_date(self) -> date | None:
        return self.record.shipment_date

    @property
    def admin_cost_amount(self) -> Decimal:
        return self.shipping_cost_difference


SourceFinancialRecordView = PurchaseOrderPaymentView | PackingListPaymentView


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a batch completion or reversion: rows actually changed."""
    affected_rows: int


def calendar_date(value, field_name: str = "date") -> date:
    """
    Coerce a calendar date from a ``date`` or an ISO ``YYYY-MM-DD`` string.

    Raises:
        MalformedDateError: on datetimes (they carry a time of day),
            unparseable strings and anything else.
    """
    if isinstance(value, datetime):
        raise MalformedDateError(str(value), field_name=field_name)
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise MalformedDateError(value, field_name=field_name) from exc
    raise MalformedDateError(str(value), field_name=field_name)
