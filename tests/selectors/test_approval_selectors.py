"""Tests for ApprovalSelector (approval inbox, history and consistency reports)."""

import pytest

from quote_kernel.domain.approval import (
    ApprovalInstanceStatus,
    DocumentApprovalStatus,
    DocumentType,
    UserRole,
)
from quote_kernel.models.documents import QuoteModel
from quote_kernel.selectors.approval_selector import ApprovalSelector
from quote_kernel.services.approval_service import ApprovalService
from quote_services.documents import QuoteDocumentAdapter


@pytest.fixture
def approvals(session, deterministic_clock):
    return ApprovalService(session, QuoteDocumentAdapter(session), deterministic_clock)


class TestApprovalSelector:
    def test_pending_for_role_follows_current_step(
        self, session, approvals, create_route, create_quote, users,
    ):
        create_route(roles=(UserRole.SALES_ADMIN, UserRole.ADMIN))
        first = create_quote(users.sales.user_id)
        second = create_quote(users.sales.user_id)
        approvals.request_approval(first.id, users.sales)
        approvals.request_approval(second.id, users.sales)
        approvals.approve(first.id, users.office)

        selector = ApprovalSelector(session)
        office_queue = selector.pending_for_role(UserRole.SALES_ADMIN)
        admin_queue = selector.pending_for_role(UserRole.ADMIN, DocumentType.QUOTE)

        assert [i.document_id for i in office_queue] == [second.id]
        assert [i.document_id for i in admin_queue] == [first.id]
        assert selector.pending_for_role(UserRole.ADMIN, DocumentType.PURCHASE_ORDER) == []

    def test_history_and_latest(self, session, approvals, create_route, create_quote, users):
        create_route()
        quote = create_quote(users.sales.user_id)
        approvals.request_approval(quote.id, users.sales)
        approvals.reject(quote.id, users.office, reason="再見積")
        approvals.request_approval(quote.id, users.sales)

        selector = ApprovalSelector(session)
        history = selector.instance_history(DocumentType.QUOTE, quote.id)
        assert [(i.attempt, i.status) for i in history] == [
            (1, ApprovalInstanceStatus.REJECTED),
            (2, ApprovalInstanceStatus.PENDING),
        ]
        assert selector.latest_instance(DocumentType.QUOTE, quote.id).attempt == 2

    def test_consistency_reports(self, session, approvals, create_route, create_quote, users):
        create_route()
        good = create_quote(users.sales.user_id)
        approvals.request_approval(good.id, users.sales)

        drifted = create_quote(users.sales.user_id)
        approvals.request_approval(drifted.id, users.sales)
        session.get(QuoteModel, drifted.id).approval_status = DocumentApprovalStatus.APPROVED.value
        session.flush()

        selector = ApprovalSelector(session)
        assert selector.pending_step_report() == {}
        violations = selector.mirror_violations(DocumentType.QUOTE)
        assert [(v.document_id, v.latest_status) for v in violations] == [
            (drifted.id, ApprovalInstanceStatus.PENDING)
        ]

