"""
Module: quote_kernel.selectors.procurement_selector
Responsibility: Read-side queries over quote items and the procurement log,
    including the activity feed shown on the procurement dashboard.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from quote_kernel.domain.procurement import (
    ProcurementAction,
    ProcurementLogEntry,
    QuoteItem,
)
from quote_kernel.models.documents import PurchaseOrderItemModel, QuoteItemModel
from quote_kernel.models.procurement_log import ProcurementLogModel
from quote_kernel.selectors.base import BaseSelector


class ProcurementSelector(BaseSelector[ProcurementLogModel]):
    """Read-only procurement queries."""

    def logs_for_item(self, quote_item_id: UUID) -> list[ProcurementLogEntry]:
        stmt = (
            select(ProcurementLogModel)
            .where(ProcurementLogModel.quote_item_id == quote_item_id)
            .order_by(ProcurementLogModel.created_at, ProcurementLogModel.line_number)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def logs_for_order(self, order_id: UUID) -> list[ProcurementLogEntry]:
        stmt = (
            select(ProcurementLogModel)
            .where(ProcurementLogModel.purchase_order_id == order_id)
            .order_by(ProcurementLogModel.created_at, ProcurementLogModel.line_number)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def activity_feed(
        self,
        limit: int = 50,
        action_types: Iterable[ProcurementAction] | None = None,
    ) -> list[ProcurementLogEntry]:
        """Most recent procurement actions, newest first."""
        stmt = select(ProcurementLogModel)
        if action_types is not None:
            stmt = stmt.where(
                ProcurementLogModel.action_type.in_([a.value for a in action_types])
            )
        stmt = stmt.order_by(
            ProcurementLogModel.created_at.desc(),
            ProcurementLogModel.line_number.desc(),
        ).limit(limit)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def items_for_order(self, order_id: UUID) -> list[QuoteItem]:
        """Distinct quote items referenced by an order's lines."""
        stmt = (
            select(QuoteItemModel)
            .join(
                PurchaseOrderItemModel,
                PurchaseOrderItemModel.quote_item_id == QuoteItemModel.id,
            )
            .where(PurchaseOrderItemModel.purchase_order_id == order_id)
            .order_by(QuoteItemModel.line_number)
            .distinct()
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def items_for_quote(self, quote_id: UUID) -> list[QuoteItem]:
        stmt = (
            select(QuoteItemModel)
            .where(QuoteItemModel.quote_id == quote_id)
            .order_by(QuoteItemModel.line_number)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]
