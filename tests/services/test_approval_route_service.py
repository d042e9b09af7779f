"""Tests for ApprovalRouteService -- route retrieval, selection and administration."""

from decimal import Decimal
from uuid import uuid4

import pytest

from quote_kernel.domain.approval import ApprovalRouteStep, DocumentType, UserRole
from quote_kernel.exceptions import (
    InvalidRouteDefinitionError,
    NoMatchingRouteError,
    RouteNotFoundError,
)
from quote_kernel.services.approval_route_service import ApprovalRouteService


@pytest.fixture
def route_service(session, deterministic_clock):
    return ApprovalRouteService(session, deterministic_clock)


class TestGetRoute:
    def test_steps_come_back_in_order(self, route_service):
        created = route_service.create_route(
            "two step",
            DocumentType.QUOTE,
            [
                ApprovalRouteStep(2, UserRole.ADMIN, notes="最終承認"),
                ApprovalRouteStep(1, UserRole.SALES_ADMIN),
            ],
        )
        route = route_service.get_route(created.route_id)
        assert [s.step_order for s in route.steps] == [1, 2]
        assert route.steps[1].notes == "最終承認"

    def test_unknown_route(self, route_service):
        with pytest.raises(RouteNotFoundError):
            route_service.get_route(uuid4())


class TestCreateRoute:
    def test_gap_in_step_orders_is_refused(self, route_service):
        with pytest.raises(InvalidRouteDefinitionError) as exc_info:
            route_service.create_route(
                "gap",
                DocumentType.QUOTE,
                [
                    ApprovalRouteStep(1, UserRole.SALES_ADMIN),
                    ApprovalRouteStep(3, UserRole.ADMIN),
                ],
            )
        assert exc_info.value.code == "INVALID_ROUTE_DEFINITION"

    def test_inverted_band_is_refused(self, route_service):
        with pytest.raises(InvalidRouteDefinitionError):
            route_service.create_route(
                "inverted",
                DocumentType.QUOTE,
                [ApprovalRouteStep(1, UserRole.ADMIN)],
                min_total_amount=Decimal("10"),
                max_total_amount=Decimal("1"),
            )

    def test_blank_name_is_refused(self, route_service):
        with pytest.raises(InvalidRouteDefinitionError):
            route_service.create_route(" ", DocumentType.QUOTE, [])

    def test_zero_step_route_is_stored_with_a_warning(self, route_service, captured_logs):
        route = route_service.create_route("staged", DocumentType.QUOTE, [])
        assert route.steps == ()
        assert any(
            r["message"] == "approval_route_without_steps" and r["level"] == "WARNING"
            for r in captured_logs()
        )


class TestSelectRoute:
    def test_selects_by_amount_band(self, route_service):
        standard = route_service.create_route(
            "standard", DocumentType.QUOTE,
            [ApprovalRouteStep(1, UserRole.SALES_ADMIN)],
            max_total_amount=Decimal("999999"),
        )
        high = route_service.create_route(
            "high", DocumentType.QUOTE,
            [ApprovalRouteStep(1, UserRole.SALES_ADMIN), ApprovalRouteStep(2, UserRole.ADMIN)],
            min_total_amount=Decimal("1000000"),
        )
        assert route_service.select_route(
            DocumentType.QUOTE, UserRole.SALES, Decimal("10"),
        ).route_id == standard.route_id
        assert route_service.select_route(
            DocumentType.QUOTE, UserRole.SALES, Decimal("1500000"),
        ).route_id == high.route_id

    def test_deactivated_routes_are_not_selected(self, route_service):
        route = route_service.create_route(
            "only", DocumentType.QUOTE, [ApprovalRouteStep(1, UserRole.ADMIN)],
        )
        route_service.deactivate_route(route.route_id)
        with pytest.raises(NoMatchingRouteError):
            route_service.select_route(DocumentType.QUOTE, UserRole.SALES, Decimal("1"))

    def test_no_route_for_document_type(self, route_service):
        route_service.create_route(
            "quotes", DocumentType.QUOTE, [ApprovalRouteStep(1, UserRole.ADMIN)],
        )
        with pytest.raises(NoMatchingRouteError) as exc_info:
            route_service.select_route(
                DocumentType.PURCHASE_ORDER, UserRole.SALES, Decimal("1"),
            )
        assert exc_info.value.code == "NO_MATCHING_ROUTE"


class TestReplaceRoute:
    def test_replacement_deactivates_previous_version(self, route_service):
        old = route_service.create_route(
            "flow", DocumentType.QUOTE, [ApprovalRouteStep(1, UserRole.SALES_ADMIN)],
        )
        new = route_service.replace_route(
            "flow", DocumentType.QUOTE, [ApprovalRouteStep(1, UserRole.ADMIN)],
        )
        assert new.route_id != old.route_id
        assert route_service.get_route(old.route_id).is_active is False
        assert [r.route_id for r in route_service.list_routes(DocumentType.QUOTE)] == [
            new.route_id
        ]
