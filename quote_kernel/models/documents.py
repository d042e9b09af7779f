"""
Module: quote_kernel.models.documents
Responsibility: ORM persistence for the two approvable documents (quotes and
    purchase orders) and their line items.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - approval_status is one of the four mirror values (check constraint);
      it is only ever changed through conditional UPDATEs issued by the
      document adapters.
    - procurement_status / purchase order status are closed enums
      (check constraints).
    - Purchase order lines reference at most one quote item; manual lines
      (quote_item_id NULL) take no part in procurement reconciliation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from quote_kernel.domain.procurement import (
        PurchaseOrder,
        PurchaseOrderLine,
        QuoteItem,
    )

_APPROVAL_STATUS_CHECK = "approval_status IN ('下書き', '承認待ち', '承認済み', '却下')"


class QuoteModel(TrackedBase):
    """Customer quote.  ``created_by_id`` is the owning sales user."""

    __tablename__ = "quotes"

    __table_args__ = (
        CheckConstraint(_APPROVAL_STATUS_CHECK, name="ck_quotes_approval_status"),
        Index("idx_quotes_approval_status", "approval_status"),
    )

    quote_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    subject: Mapped[str] = mapped_column(String(300), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="下書き",
    )
    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    items: Mapped[list[QuoteItemModel]] = relationship(
        "QuoteItemModel",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItemModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Quote {self.quote_number} approval_status={self.approval_status}>"


class QuoteItemModel(Base):
    """Quote line item carrying the derived procurement status."""

    __tablename__ = "quote_items"

    __table_args__ = (
        UniqueConstraint("quote_id", "line_number", name="uq_quote_items_line"),
        CheckConstraint(
            "procurement_status IN ('未発注', '発注済', '入荷済')",
            name="ck_quote_items_procurement_status",
        ),
        Index("idx_quote_items_procurement_status", "procurement_status"),
    )

    quote_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("quotes.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    requires_procurement: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    procurement_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="未発注",
    )
    ordered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    received_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    quote: Mapped[QuoteModel] = relationship("QuoteModel", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<QuoteItem {self.quote_id}#{self.line_number} "
            f"procurement_status={self.procurement_status}>"
        )

    def to_dto(self) -> QuoteItem:
        """Convert ORM model to frozen domain DTO."""
        from quote_kernel.domain.dates import ensure_utc_or_none
        from quote_kernel.domain.procurement import (
            ProcurementStatus,
            QuoteItem as QuoteItemDTO,
        )

        return QuoteItemDTO(
            item_id=self.id,
            quote_id=self.quote_id,
            line_number=self.line_number,
            product_name=self.product_name,
            quantity=self.quantity,
            procurement_status=ProcurementStatus(self.procurement_status),
            requires_procurement=self.requires_procurement,
            ordered_at=ensure_utc_or_none(self.ordered_at),
            received_at=ensure_utc_or_none(self.received_at),
        )


class PurchaseOrderModel(TrackedBase):
    """Purchase order placed with a supplier, optionally for one quote."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        CheckConstraint(_APPROVAL_STATUS_CHECK, name="ck_purchase_orders_approval_status"),
        CheckConstraint(
            "status IN ('未発注', '発注済', 'キャンセル')",
            name="ck_purchase_orders_status",
        ),
        Index("idx_purchase_orders_status", "status"),
        Index("idx_purchase_orders_quote", "quote_id"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    quote_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("quotes.id"), nullable=True,
    )
    order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="未発注")
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="下書き",
    )
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    items: Mapped[list[PurchaseOrderItemModel]] = relationship(
        "PurchaseOrderItemModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItemModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrder {self.order_number} status={self.status} "
            f"approval_status={self.approval_status}>"
        )

    def to_dto(self) -> PurchaseOrder:
        """Convert ORM model to frozen domain DTO."""
        from quote_kernel.domain.approval import DocumentApprovalStatus
        from quote_kernel.domain.dates import ensure_utc_or_none
        from quote_kernel.domain.procurement import (
            PurchaseOrder as PurchaseOrderDTO,
            PurchaseOrderStatus,
        )

        return PurchaseOrderDTO(
            order_id=self.id,
            order_number=self.order_number,
            status=PurchaseOrderStatus(self.status),
            approval_status=DocumentApprovalStatus(self.approval_status),
            total_cost=self.total_cost,
            created_by=self.created_by_id,
            quote_id=self.quote_id,
            order_date=self.order_date,
            notes=self.notes,
            approved_by=self.approved_by,
            approved_at=ensure_utc_or_none(self.approved_at),
            lines=tuple(line.to_dto() for line in self.items),
        )


class PurchaseOrderItemModel(Base):
    """Purchase order line, linking the order to a quote item."""

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint(
            "purchase_order_id", "line_number",
            name="uq_purchase_order_items_line",
        ),
        Index("idx_purchase_order_items_quote_item", "quote_item_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    quote_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("quote_items.id"), nullable=True,
    )
    description: Mapped[str | None] = mapped_column(String(300), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    purchase_order: Mapped[PurchaseOrderModel] = relationship(
        "PurchaseOrderModel", back_populates="items",
    )

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderItem {self.purchase_order_id}#{self.line_number} "
            f"quote_item={self.quote_item_id}>"
        )

    def to_dto(self) -> PurchaseOrderLine:
        """Convert ORM model to frozen domain DTO."""
        from quote_kernel.domain.procurement import PurchaseOrderLine

        return PurchaseOrderLine(
            line_id=self.id,
            quote_item_id=self.quote_item_id,
            description=self.description,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            amount=self.amount,
        )
