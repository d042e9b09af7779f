"""Tests for the pure route selection engine (quote_engines/route_matching.py)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from quote_engines.route_matching import (
    route_matches,
    select_matching_route,
    validate_amount_band,
    validate_step_orders,
)
from quote_kernel.domain.approval import (
    ApprovalRoute,
    ApprovalRouteStep,
    DocumentType,
    UserRole,
)


def make_route(
    name,
    target_type=DocumentType.QUOTE,
    requester_role=None,
    min_total_amount=None,
    max_total_amount=None,
    is_active=True,
):
    return ApprovalRoute(
        route_id=uuid4(),
        name=name,
        target_type=target_type,
        steps=(ApprovalRouteStep(1, UserRole.SALES_ADMIN),),
        requester_role=requester_role,
        min_total_amount=min_total_amount,
        max_total_amount=max_total_amount,
        is_active=is_active,
    )


class TestRouteMatches:
    def test_unrestricted_route_matches_anything(self):
        assert route_matches(make_route("any"), UserRole.SALES, Decimal("1"))

    def test_inactive_route_never_matches(self):
        assert not route_matches(make_route("old", is_active=False), UserRole.SALES, None)

    def test_requester_role_restriction(self):
        route = make_route("sales only", requester_role=UserRole.SALES)
        assert route_matches(route, UserRole.SALES, None)
        assert not route_matches(route, UserRole.ADMIN, None)

    @pytest.mark.parametrize(
        "amount, expected",
        [
            (Decimal("99"), False),
            (Decimal("100"), True),
            (Decimal("500"), True),
            (Decimal("1000"), True),
            (Decimal("1000.01"), False),
        ],
    )
    def test_amount_band_is_inclusive(self, amount, expected):
        route = make_route(
            "band", min_total_amount=Decimal("100"), max_total_amount=Decimal("1000"),
        )
        assert route_matches(route, UserRole.SALES, amount) is expected

    def test_missing_amount_skips_band(self):
        route = make_route("band", min_total_amount=Decimal("100"))
        assert route_matches(route, UserRole.SALES, None)


class TestSelectMatchingRoute:
    def test_routes_for_other_types_are_ignored(self):
        po_route = make_route("po", target_type=DocumentType.PURCHASE_ORDER)
        assert select_matching_route(
            [po_route], DocumentType.QUOTE, UserRole.SALES, Decimal("1"),
        ) is None

    def test_lowest_band_first_then_name(self):
        high = make_route("a-high", min_total_amount=Decimal("1000000"))
        catch_all_b = make_route("b-catch-all")
        catch_all_a = make_route("a-catch-all")
        chosen = select_matching_route(
            [high, catch_all_b, catch_all_a],
            DocumentType.QUOTE,
            UserRole.SALES,
            Decimal("2000000"),
        )
        assert chosen is catch_all_a

    def test_banded_routes_split_by_amount(self):
        standard = make_route("standard", max_total_amount=Decimal("999999"))
        high = make_route("high", min_total_amount=Decimal("1000000"))
        routes = [high, standard]

        assert select_matching_route(
            routes, DocumentType.QUOTE, UserRole.SALES, Decimal("500000"),
        ) is standard
        assert select_matching_route(
            routes, DocumentType.QUOTE, UserRole.SALES, Decimal("1000000"),
        ) is high

    def test_selection_does_not_depend_on_input_order(self):
        routes = [make_route(f"r{i}") for i in range(5)]
        first = select_matching_route(routes, DocumentType.QUOTE, UserRole.SALES, None)
        again = select_matching_route(
            list(reversed(routes)), DocumentType.QUOTE, UserRole.SALES, None,
        )
        assert first is again is routes[0]


class TestValidateStepOrders:
    def test_contiguous_orders_are_valid(self):
        assert validate_step_orders([1, 2, 3]) == []

    def test_unsorted_but_contiguous_is_valid(self):
        assert validate_step_orders([2, 1]) == []

    def test_empty_is_valid(self):
        assert validate_step_orders([]) == []

    def test_duplicates(self):
        assert any("duplicate" in p for p in validate_step_orders([1, 1, 2]))

    def test_gap(self):
        assert any("missing 2" in p for p in validate_step_orders([1, 3]))

    def test_zero_based(self):
        assert validate_step_orders([0, 1])


class TestValidateAmountBand:
    def test_open_band(self):
        assert validate_amount_band(None, None) == []

    def test_inverted_band(self):
        assert validate_amount_band(Decimal("10"), Decimal("1"))

    def test_negative_minimum(self):
        assert validate_amount_band(Decimal("-1"), None)
