"""Tests for procurement domain types (quote_kernel/domain/procurement.py)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from quote_kernel.domain.approval import DocumentApprovalStatus
from quote_kernel.domain.procurement import (
    ProcurementStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    ReversionPolicy,
    derive_procurement_status,
)


class TestPurchaseOrderStatusParsing:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("未発注", PurchaseOrderStatus.DRAFT),
            ("下書き", PurchaseOrderStatus.DRAFT),
            ("draft", PurchaseOrderStatus.DRAFT),
            ("発注済", PurchaseOrderStatus.ORDERED),
            ("Ordered", PurchaseOrderStatus.ORDERED),
            ("キャンセル", PurchaseOrderStatus.CANCELLED),
            ("canceled", PurchaseOrderStatus.CANCELLED),
        ],
    )
    def test_values_and_aliases(self, value, expected):
        assert PurchaseOrderStatus(value) is expected

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            PurchaseOrderStatus("shipped")


class TestDeriveProcurementStatus:
    def test_recompute_keeps_item_ordered_from_earliest_other_order(self):
        status, ordered_on = derive_procurement_status(
            ProcurementStatus.ORDERED,
            [date(2025, 3, 1), date(2025, 2, 1)],
            ReversionPolicy.RECOMPUTE,
        )
        assert status == ProcurementStatus.ORDERED
        assert ordered_on == date(2025, 2, 1)

    def test_recompute_without_other_orders_reverts(self):
        assert derive_procurement_status(
            ProcurementStatus.ORDERED, [], ReversionPolicy.RECOMPUTE,
        ) == (ProcurementStatus.UNORDERED, None)

    def test_reset_ignores_other_orders(self):
        assert derive_procurement_status(
            ProcurementStatus.ORDERED, [date(2025, 2, 1)], ReversionPolicy.RESET,
        ) == (ProcurementStatus.UNORDERED, None)

    @pytest.mark.parametrize("policy", list(ReversionPolicy))
    def test_received_items_are_never_downgraded(self, policy):
        assert derive_procurement_status(
            ProcurementStatus.RECEIVED, [], policy,
        ) == (ProcurementStatus.RECEIVED, None)


def test_quote_item_ids_are_distinct_and_skip_manual_lines():
    item_a, item_b = uuid4(), uuid4()

    def line(item_id):
        return PurchaseOrderLine(
            line_id=uuid4(),
            quote_item_id=item_id,
            description=None,
            quantity=Decimal("1"),
            unit_cost=Decimal("0"),
            amount=Decimal("0"),
        )

    order = PurchaseOrder(
        order_id=uuid4(),
        order_number="PO-1",
        status=PurchaseOrderStatus.DRAFT,
        approval_status=DocumentApprovalStatus.DRAFT,
        total_cost=Decimal("0"),
        created_by=uuid4(),
        lines=(line(item_a), line(None), line(item_b), line(item_a)),
    )
    assert order.quote_item_ids == (item_a, item_b)
