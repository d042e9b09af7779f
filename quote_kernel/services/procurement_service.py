"""
quote_kernel.services.procurement_service -- Procurement reconciliation.

Responsibility:
    Keeps each quote item's procurement status consistent with the
    purchase orders that reference it, and writes the append-only
    procurement log (orders placed, goods received, shipment ready).

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Flushes only; the caller owns the transaction.

Invariants enforced:
    - A purchase order can be set to 発注済 only once its approval mirror is
      承認済み.
    - Order dates are normalized once; the order's date and every item's
      ``ordered_at`` come from the same parse.  Under RECOMPUTE an item
      referenced by several ordered orders keeps the earliest of their dates.
    - 発注 log rows are written only on the edge into 発注済, one per
      referencing line, so re-saving an ordered order logs nothing.
    - Leaving 発注済 writes no log rows.  Items are reconciled under the
      configured ReversionPolicy; received items are never downgraded.

Failure modes:
    - DocumentNotFoundError / QuoteItemNotFoundError for unknown ids.
    - InvalidStatusValueError for unknown status strings.
    - OrderNotApprovedError, ItemNotOrderedError,
      InvalidReceiptQuantityError (InvalidState).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from quote_kernel.domain.approval import Caller, DocumentApprovalStatus, DocumentType
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.dates import NormalizedDate, normalize_order_date
from quote_kernel.domain.procurement import (
    ProcurementAction,
    ProcurementStatus,
    PurchaseOrder,
    PurchaseOrderStatus,
    QuoteItem,
    ReversionPolicy,
    derive_procurement_status,
)
from quote_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidReceiptQuantityError,
    InvalidStatusValueError,
    ItemNotOrderedError,
    OrderNotApprovedError,
    QuoteItemNotFoundError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.documents import (
    PurchaseOrderItemModel,
    PurchaseOrderModel,
    QuoteItemModel,
)
from quote_kernel.models.procurement_log import ProcurementLogModel
from quote_kernel.services.base import BaseService

logger = get_logger("services.procurement")


def parse_purchase_order_status(value: PurchaseOrderStatus | str) -> PurchaseOrderStatus:
    """Coerce a status enum or string (including aliases) to PurchaseOrderStatus."""
    if isinstance(value, PurchaseOrderStatus):
        return value
    try:
        return PurchaseOrderStatus(value)
    except ValueError:
        raise InvalidStatusValueError("purchase order status", str(value)) from None


class ProcurementService(BaseService[PurchaseOrderModel]):
    """Purchase order status changes and their effect on quote items."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        reversion_policy: ReversionPolicy = ReversionPolicy.RECOMPUTE,
    ):
        super().__init__(session, clock)
        self.reversion_policy = reversion_policy

    # ------------------------------------------------------------------
    # Purchase order status
    # ------------------------------------------------------------------

    def set_purchase_order_status(
        self,
        order_id: UUID,
        new_status: PurchaseOrderStatus | str,
        caller: Caller,
        order_date: date | datetime | str | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        """Change an order's status and reconcile its quote items.

        ``notes`` replaces the stored notes when given (blank clears them);
        None leaves them unchanged.
        """
        status = parse_purchase_order_status(new_status)
        order = self._get_order(order_id)

        if (
            status == PurchaseOrderStatus.ORDERED
            and order.approval_status != DocumentApprovalStatus.APPROVED.value
        ):
            raise OrderNotApprovedError(str(order_id), order.approval_status)

        normalized = normalize_order_date(order_date, self.clock)
        previous = PurchaseOrderStatus(order.status)

        order.status = status.value
        order.order_date = normalized.sql_date
        if notes is not None:
            order.notes = notes.strip() or None
        order.updated_by_id = caller.user_id
        self.session.flush()

        if status == PurchaseOrderStatus.ORDERED:
            self._mark_items_ordered(
                order,
                normalized,
                caller,
                write_log=previous != PurchaseOrderStatus.ORDERED,
                notes=order.notes,
            )
        else:
            self._revert_items(order)

        logger.info(
            "purchase_order_status_changed",
            extra={
                "order_id": str(order_id),
                "from_status": previous.value,
                "to_status": status.value,
                "order_date": normalized.sql_date.isoformat(),
            },
        )
        return order.to_dto()

    def reconcile_items_for_order(self, order_id: UUID) -> list[QuoteItem]:
        """Re-derive the procurement status of every item the order references.

        Brings items in line with the order's current status without
        changing it.  Writes no log rows.
        """
        order = self._get_order(order_id)
        if order.status == PurchaseOrderStatus.ORDERED.value:
            normalized = normalize_order_date(order.order_date, self.clock)
            return self._mark_items_ordered(
                order, normalized, caller=None, write_log=False, notes=None,
            )
        return self._revert_items(order)

    def reset_order_status(self, order_id: UUID, caller: Caller) -> list[QuoteItem]:
        """Return an order to 未発注 after an approval decision.

        Approval request, approval, rejection and cancellation all leave the
        order unplaced.  Order date and notes are kept; items are
        reconciled and no log rows are written.
        """
        order = self._get_order(order_id)
        previous = order.status
        if previous != PurchaseOrderStatus.DRAFT.value:
            order.status = PurchaseOrderStatus.DRAFT.value
            order.updated_by_id = caller.user_id
            self.session.flush()
            logger.info(
                "purchase_order_status_reset",
                extra={"order_id": str(order_id), "from_status": previous},
            )
        return self.reconcile_items_for_order(order_id)

    def get_order(self, order_id: UUID) -> PurchaseOrder:
        return self._get_order(order_id).to_dto()

    # ------------------------------------------------------------------
    # Receiving and shipping
    # ------------------------------------------------------------------

    def record_receipt(
        self,
        quote_item_id: UUID,
        quantity: Decimal | int | str,
        caller: Caller,
        received_date: date | datetime | str | None = None,
        notes: str | None = None,
    ) -> QuoteItem:
        """Log goods received against an ordered item.

        The item becomes 入荷済 once the cumulative received quantity
        reaches the item quantity.
        """
        item = self._get_item(quote_item_id)
        if item.procurement_status != ProcurementStatus.ORDERED.value:
            raise ItemNotOrderedError(
                str(quote_item_id),
                item.procurement_status,
                ProcurementStatus.ORDERED.value,
            )

        received = self.received_quantity(quote_item_id)
        remaining = item.quantity - received
        qty = _to_decimal(quantity)
        if qty is None or qty <= 0 or qty > remaining:
            raise InvalidReceiptQuantityError(
                str(quote_item_id), str(quantity), str(remaining),
            )

        normalized = normalize_order_date(received_date, self.clock)
        self._append_log(
            item.id,
            ProcurementAction.RECEIVE,
            normalized.sql_date,
            qty,
            caller,
            notes=notes,
        )

        fully_received = received + qty >= item.quantity
        if fully_received:
            item.procurement_status = ProcurementStatus.RECEIVED.value
            item.received_at = normalized.timestamp
        self.session.flush()

        logger.info(
            "procurement_receipt_recorded",
            extra={
                "quote_item_id": str(quote_item_id),
                "quantity": qty,
                "fully_received": fully_received,
            },
        )
        return item.to_dto()

    def record_shipment_ready(
        self,
        quote_item_id: UUID,
        caller: Caller,
        action_date: date | datetime | str | None = None,
        notes: str | None = None,
    ) -> QuoteItem:
        """Log that a fully received item is ready to ship."""
        item = self._get_item(quote_item_id)
        if item.procurement_status != ProcurementStatus.RECEIVED.value:
            raise ItemNotOrderedError(
                str(quote_item_id),
                item.procurement_status,
                ProcurementStatus.RECEIVED.value,
            )

        normalized = normalize_order_date(action_date, self.clock)
        self._append_log(
            item.id,
            ProcurementAction.SHIPMENT_READY,
            normalized.sql_date,
            item.quantity,
            caller,
            notes=notes,
        )
        self.session.flush()

        logger.info(
            "procurement_shipment_ready",
            extra={"quote_item_id": str(quote_item_id)},
        )
        return item.to_dto()

    def received_quantity(self, quote_item_id: UUID) -> Decimal:
        total = self.session.scalar(
            select(func.coalesce(func.sum(ProcurementLogModel.quantity), 0)).where(
                ProcurementLogModel.quote_item_id == quote_item_id,
                ProcurementLogModel.action_type == ProcurementAction.RECEIVE.value,
            )
        )
        return Decimal(str(total or 0))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_order(self, order_id: UUID) -> PurchaseOrderModel:
        order = self.session.get(PurchaseOrderModel, order_id)
        if order is None:
            raise DocumentNotFoundError(DocumentType.PURCHASE_ORDER.value, str(order_id))
        return order

    def _get_item(self, quote_item_id: UUID) -> QuoteItemModel:
        item = self.session.get(QuoteItemModel, quote_item_id)
        if item is None:
            raise QuoteItemNotFoundError(str(quote_item_id))
        return item

    def _referenced_items(self, order: PurchaseOrderModel) -> list[QuoteItemModel]:
        items: list[QuoteItemModel] = []
        seen: set[UUID] = set()
        for line in order.items:
            if line.quote_item_id is None or line.quote_item_id in seen:
                continue
            seen.add(line.quote_item_id)
            items.append(self._get_item(line.quote_item_id))
        return items

    def _mark_items_ordered(
        self,
        order: PurchaseOrderModel,
        normalized: NormalizedDate,
        caller: Caller | None,
        *,
        write_log: bool,
        notes: str | None,
    ) -> list[QuoteItem]:
        items = self._referenced_items(order)
        for item in items:
            if item.procurement_status == ProcurementStatus.RECEIVED.value:
                continue
            item.procurement_status = ProcurementStatus.ORDERED.value
            item.ordered_at = self._ordered_since(item, order, normalized).timestamp

        logged = 0
        if write_log and caller is not None:
            for line in order.items:
                if line.quote_item_id is None:
                    continue
                self._append_log(
                    line.quote_item_id,
                    ProcurementAction.ORDER,
                    normalized.sql_date,
                    line.quantity,
                    caller,
                    notes=notes,
                    purchase_order_id=order.id,
                    line_number=line.line_number,
                )
                logged += 1
        self.session.flush()

        logger.info(
            "quote_items_ordered",
            extra={
                "order_id": str(order.id),
                "item_count": len(items),
                "log_rows": logged,
            },
        )
        return [item.to_dto() for item in items]

    def _revert_items(self, order: PurchaseOrderModel) -> list[QuoteItem]:
        items = self._referenced_items(order)
        for item in items:
            other_dates = self._other_ordered_dates(item.id, order.id)
            status, ordered_on = derive_procurement_status(
                ProcurementStatus(item.procurement_status),
                other_dates,
                self.reversion_policy,
            )
            if status == ProcurementStatus.RECEIVED:
                continue
            item.procurement_status = status.value
            item.ordered_at = (
                NormalizedDate.from_date(ordered_on).timestamp
                if ordered_on is not None
                else None
            )
        self.session.flush()

        logger.info(
            "quote_items_reverted",
            extra={
                "order_id": str(order.id),
                "item_count": len(items),
                "policy": self.reversion_policy.value,
            },
        )
        return [item.to_dto() for item in items]

    def _ordered_since(
        self,
        item: QuoteItemModel,
        order: PurchaseOrderModel,
        normalized: NormalizedDate,
    ) -> NormalizedDate:
        """Date an item counts as ordered from while ``order`` is ordered.

        Under RECOMPUTE this is the earliest date among every ordered order
        referencing the item, the same rule reversion applies.
        """
        if self.reversion_policy != ReversionPolicy.RECOMPUTE:
            return normalized
        earlier = [
            d for d in self._other_ordered_dates(item.id, order.id)
            if d < normalized.sql_date
        ]
        return NormalizedDate.from_date(min(earlier)) if earlier else normalized

    def _other_ordered_dates(self, quote_item_id: UUID, order_id: UUID) -> list[date]:
        rows = self.session.scalars(
            select(PurchaseOrderModel.order_date)
            .join(
                PurchaseOrderItemModel,
                PurchaseOrderItemModel.purchase_order_id == PurchaseOrderModel.id,
            )
            .where(
                PurchaseOrderItemModel.quote_item_id == quote_item_id,
                PurchaseOrderModel.id != order_id,
                PurchaseOrderModel.status == PurchaseOrderStatus.ORDERED.value,
            )
        ).all()
        return [d for d in rows if d is not None]

    def _append_log(
        self,
        quote_item_id: UUID,
        action: ProcurementAction,
        action_date: date,
        quantity: Decimal,
        caller: Caller,
        *,
        notes: str | None = None,
        purchase_order_id: UUID | None = None,
        line_number: int | None = None,
    ) -> ProcurementLogModel:
        entry = ProcurementLogModel(
            quote_item_id=quote_item_id,
            purchase_order_id=purchase_order_id,
            line_number=line_number,
            action_type=action.value,
            action_date=action_date,
            quantity=quantity,
            performed_by=caller.user_id,
            notes=notes.strip() if notes and notes.strip() else None,
            created_at=self.clock.now_utc(),
        )
        self.session.add(entry)
        return entry


def _to_decimal(value: Decimal | int | str) -> Decimal | None:
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    return result if result.is_finite() else None
