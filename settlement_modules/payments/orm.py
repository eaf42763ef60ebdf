"""
SQLAlchemy ORM persistence model for payment requests.

Responsibility
--------------
Persist ``PaymentRequest`` rows -- the only entity settlement owns.

Architecture position
---------------------
**Modules layer** -- consumed by ``PaymentRequestService``.  Inherits from
``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``request_number`` is unique.
* At most one ``requested`` row per (source_type, source_id, payment_type):
  a partial unique index backs the service-level duplicate check.
* ``version`` is the mapper's ``version_id_col``: every UPDATE is a
  compare-and-swap on it, so two writers cannot both complete or revert
  the same request.
* Enum fields stored as String(50) for readability and portability.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase


class PaymentRequestModel(TrackedBase):
    """
    A request to pay one amount on one source record.

    Maps to the ``PaymentRequest`` DTO in
    ``settlement_modules.payments.models``.

    Guarantees:
        - ``payment_date`` is non-null iff ``status`` is ``completed``.
        - ``source_id`` references a purchase order or packing list by id;
          no FK, the source tables are owned elsewhere.
    """

    __tablename__ = "payment_requests"

    __table_args__ = (
        UniqueConstraint("request_number", name="uq_payment_request_number"),
        Index(
            "uq_payment_request_active_key",
            "source_type",
            "source_id",
            "payment_type",
            unique=True,
            postgresql_where=text("status = 'requested'"),
            sqlite_where=text("status = 'requested'"),
        ),
        Index("idx_payment_request_source", "source_type", "source_id"),
        Index("idx_payment_request_status", "status"),
        Index("idx_payment_request_date", "request_date"),
    )

    request_number: Mapped[str] = mapped_column(String(50), nullable=False)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[UUID] = mapped_column(nullable=False)
    payment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="requested")
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    requested_by: Mapped[UUID] = mapped_column(nullable=False)
    completed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    memo: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from settlement_modules.payments.models import (
            PaymentRequest,
            PaymentRequestStatus,
            PaymentType,
            SourceType,
        )

        return PaymentRequest(
            id=self.id,
            request_number=self.request_number,
            source_type=SourceType(self.source_type),
            source_id=self.source_id,
            payment_type=PaymentType(self.payment_type),
            amount=self.amount,
            status=PaymentRequestStatus(self.status),
            request_date=self.request_date,
            requested_by=self.requested_by,
            payment_date=self.payment_date,
            completed_by=self.completed_by,
            memo=self.memo,
            version=self.version,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<PaymentRequestModel {self.request_number} [{self.status}]>"
