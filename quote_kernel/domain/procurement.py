"""
Procurement domain types (``quote_kernel.domain.procurement``).

Responsibility
--------------
Status enums and frozen DTOs for quote items, purchase orders and the
procurement activity log, plus the pure rule that derives a quote item's
procurement status from the purchase orders referencing it.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from quote_kernel.domain.approval import DocumentApprovalStatus


class ProcurementStatus(str, Enum):
    """Fulfillment state of a quote line item."""

    UNORDERED = "未発注"
    ORDERED = "発注済"
    RECEIVED = "入荷済"


class PurchaseOrderStatus(str, Enum):
    """Purchase order lifecycle.

    ``下書き`` and the English names are accepted as aliases when parsing,
    since order forms label the draft state that way.
    """

    DRAFT = "未発注"
    ORDERED = "発注済"
    CANCELLED = "キャンセル"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return _PURCHASE_ORDER_STATUS_ALIASES.get(value.strip().lower())
        return None


_PURCHASE_ORDER_STATUS_ALIASES: dict[str, PurchaseOrderStatus] = {
    "下書き": PurchaseOrderStatus.DRAFT,
    "draft": PurchaseOrderStatus.DRAFT,
    "unordered": PurchaseOrderStatus.DRAFT,
    "ordered": PurchaseOrderStatus.ORDERED,
    "cancelled": PurchaseOrderStatus.CANCELLED,
    "canceled": PurchaseOrderStatus.CANCELLED,
}


class ProcurementAction(str, Enum):
    """Action types recorded in the procurement log."""

    ORDER = "発注"
    RECEIVE = "入荷"
    SHIPMENT_READY = "出荷準備完了"


class ReversionPolicy(str, Enum):
    """How quote items are reconciled when an order leaves ``ordered``.

    RECOMPUTE keeps an item ordered while any other referencing order is
    still ordered.  RESET returns it to unordered.  Received items are
    left as they are under either policy.
    """

    RECOMPUTE = "recompute"
    RESET = "reset"


# =========================================================================
# DTOs
# =========================================================================


@dataclass(frozen=True)
class QuoteItem:
    item_id: UUID
    quote_id: UUID
    line_number: int
    product_name: str
    quantity: Decimal
    procurement_status: ProcurementStatus
    requires_procurement: bool = True
    ordered_at: datetime | None = None
    received_at: datetime | None = None


@dataclass(frozen=True)
class PurchaseOrderLine:
    line_id: UUID
    quote_item_id: UUID | None
    description: str | None
    quantity: Decimal
    unit_cost: Decimal
    amount: Decimal


@dataclass(frozen=True)
class PurchaseOrder:
    order_id: UUID
    order_number: str
    status: PurchaseOrderStatus
    approval_status: DocumentApprovalStatus
    total_cost: Decimal
    created_by: UUID
    quote_id: UUID | None = None
    order_date: date | None = None
    notes: str | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    lines: tuple[PurchaseOrderLine, ...] = field(default=())

    @property
    def quote_item_ids(self) -> tuple[UUID, ...]:
        """Distinct referenced quote items, in line order."""
        seen: list[UUID] = []
        for line in self.lines:
            if line.quote_item_id is not None and line.quote_item_id not in seen:
                seen.append(line.quote_item_id)
        return tuple(seen)


@dataclass(frozen=True)
class ProcurementLogEntry:
    log_id: UUID
    quote_item_id: UUID
    action_type: ProcurementAction
    action_date: date
    quantity: Decimal
    performed_by: UUID
    purchase_order_id: UUID | None = None
    line_number: int | None = None
    notes: str | None = None
    created_at: datetime | None = None


# =========================================================================
# Derivation
# =========================================================================


def derive_procurement_status(
    current: ProcurementStatus,
    other_order_dates: Iterable[date],
    policy: ReversionPolicy,
) -> tuple[ProcurementStatus, date | None]:
    """Status an item reverts to when one referencing order leaves ``ordered``.

    Args:
        current: The item's status before reversion.
        other_order_dates: Order dates of the OTHER referencing orders that
            are still ordered.
        policy: Reversion policy in force.

    Returns:
        (new status, date the item counts as ordered from or None).
        Received items keep their status; the returned date is then None
        and callers leave ``ordered_at`` untouched.
    """
    if current == ProcurementStatus.RECEIVED:
        return current, None
    if policy == ReversionPolicy.RECOMPUTE:
        dates = sorted(other_order_dates)
        if dates:
            return ProcurementStatus.ORDERED, dates[0]
    return ProcurementStatus.UNORDERED, None
