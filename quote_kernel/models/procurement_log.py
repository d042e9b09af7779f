"""
Module: quote_kernel.models.procurement_log
Responsibility: ORM persistence for the procurement activity log.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: rows are written as a side effect of a procurement state
      transition and never updated or deleted (ORM listeners below).
    - action_type is one of 発注 / 入荷 / 出荷準備完了.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base, UUIDString
from quote_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from quote_kernel.domain.procurement import ProcurementLogEntry


class ProcurementLogModel(Base):
    """Immutable record of one procurement action against a quote item."""

    __tablename__ = "procurement_logs"

    __table_args__ = (
        CheckConstraint(
            "action_type IN ('発注', '入荷', '出荷準備完了')",
            name="ck_procurement_logs_action_type",
        ),
        Index("idx_procurement_logs_item", "quote_item_id", "action_type"),
        Index("idx_procurement_logs_created", "created_at"),
    )

    quote_item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("quote_items.id"), nullable=False,
    )
    purchase_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=True,
    )
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    action_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # Purchase order line a 発注 row was written for; orders rows of one write.
    line_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ProcurementLog {self.action_type} item={self.quote_item_id} "
            f"qty={self.quantity} on {self.action_date}>"
        )

    def to_dto(self) -> ProcurementLogEntry:
        """Convert ORM model to frozen domain DTO."""
        from quote_kernel.domain.dates import ensure_utc_or_none
        from quote_kernel.domain.procurement import (
            ProcurementAction,
            ProcurementLogEntry as ProcurementLogEntryDTO,
        )

        return ProcurementLogEntryDTO(
            log_id=self.id,
            quote_item_id=self.quote_item_id,
            action_type=ProcurementAction(self.action_type),
            action_date=self.action_date,
            quantity=self.quantity,
            performed_by=self.performed_by,
            purchase_order_id=self.purchase_order_id,
            line_number=self.line_number,
            notes=self.notes,
            created_at=ensure_utc_or_none(self.created_at),
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(ProcurementLogModel, "before_update")
def prevent_procurement_log_update(mapper, connection, target):
    """Prevent updates to procurement log records."""
    raise ImmutabilityViolationError(
        entity_type="ProcurementLog",
        entity_id=str(target.id),
        reason="Procurement log entries are append-only -- cannot modify",
    )


@event.listens_for(ProcurementLogModel, "before_delete")
def prevent_procurement_log_delete(mapper, connection, target):
    """Prevent deletion of procurement log records."""
    raise ImmutabilityViolationError(
        entity_type="ProcurementLog",
        entity_id=str(target.id),
        reason="Procurement log entries are append-only -- cannot delete",
    )
