"""
End-to-end quote approval through the ApprovalWorkflow facade.

Every call runs in its own transaction, as a request handler would make it;
state is read back through a fresh session.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from quote_config import install_routes, load_approval_routes
from quote_kernel.domain.approval import (
    ApprovalInstanceStatus,
    ApprovalStepStatus,
    DocumentApprovalStatus,
    DocumentType,
    UserRole,
)
from quote_kernel.models.approval import ApprovalInstanceModel
from quote_kernel.models.documents import QuoteModel
from quote_kernel.selectors.approval_selector import ApprovalSelector
from quote_services.workflow import ActionStatus


def latest(session_factory, quote_id):
    with session_factory() as s:
        return ApprovalSelector(s).latest_instance(DocumentType.QUOTE, quote_id)


def mirror(fetch, quote_id):
    return fetch(QuoteModel, quote_id).approval_status


class TestTwoStepApproval:
    def test_request_then_approve_each_step(
        self, session_factory, fetch, quote_workflow, create_route, create_quote, users,
    ):
        create_route(roles=(UserRole.SALES_ADMIN, UserRole.ADMIN))
        quote = create_quote(users.sales.user_id)

        requested = quote_workflow.request_approval(quote.id, users.sales.user_id)
        assert requested.is_success
        assert requested.value.status == ApprovalInstanceStatus.PENDING
        assert requested.value.current_step == 1
        assert mirror(fetch, quote.id) == DocumentApprovalStatus.PENDING.value

        step_one = quote_workflow.approve(quote.id, users.office.user_id)
        assert step_one.is_success
        instance = latest(session_factory, quote.id)
        assert instance.current_step == 2
        assert instance.step(1).status == ApprovalStepStatus.APPROVED

        step_two = quote_workflow.approve(quote.id, users.admin.user_id)
        assert step_two.is_success
        instance = latest(session_factory, quote.id)
        assert instance.status == ApprovalInstanceStatus.APPROVED
        assert instance.current_step is None
        assert mirror(fetch, quote.id) == DocumentApprovalStatus.APPROVED.value

    def test_reject_by_wrong_role_leaves_instance_unchanged(
        self, session_factory, quote_workflow, create_route, create_quote, users,
    ):
        create_route(roles=(UserRole.SALES_ADMIN, UserRole.ADMIN))
        quote = create_quote(users.sales.user_id)
        quote_workflow.request_approval(quote.id, users.sales.user_id)
        before = latest(session_factory, quote.id)

        result = quote_workflow.reject(quote.id, users.admin.user_id, reason="不可")

        assert result.status == ActionStatus.UNAUTHORIZED
        assert result.error_code == "APPROVER_ROLE_MISMATCH"
        assert result.message
        assert latest(session_factory, quote.id) == before


@pytest.mark.parametrize("step_count", [1, 2, 3, 5])
def test_round_trip_through_every_step(
    session_factory, quote_workflow, create_route, create_quote, users, step_count,
):
    roles = [UserRole.SALES_ADMIN if i % 2 == 0 else UserRole.ADMIN for i in range(step_count)]
    approver = {UserRole.SALES_ADMIN: users.office, UserRole.ADMIN: users.admin}
    create_route(roles=roles)
    quote = create_quote(users.sales.user_id)

    assert quote_workflow.request_approval(quote.id, users.sales.user_id).is_success
    for role in roles:
        assert quote_workflow.approve(quote.id, approver[role].user_id).is_success

    instance = latest(session_factory, quote.id)
    assert instance.status == ApprovalInstanceStatus.APPROVED
    assert instance.current_step is None
    assert len(instance.steps) == step_count
    assert all(s.status == ApprovalStepStatus.APPROVED for s in instance.steps)


def test_zero_step_route_is_a_configuration_error(
    session_factory, fetch, quote_workflow, create_route, create_quote, users,
):
    create_route(roles=())
    quote = create_quote(users.sales.user_id)

    result = quote_workflow.request_approval(quote.id, users.sales.user_id)

    assert result.status == ActionStatus.CONFIGURATION_ERROR
    assert result.error_code == "EMPTY_ROUTE"
    with session_factory() as s:
        assert s.scalar(select(func.count()).select_from(ApprovalInstanceModel)) == 0
    assert mirror(fetch, quote.id) == DocumentApprovalStatus.DRAFT.value


def test_reject_cancel_and_request_again(
    session_factory, fetch, quote_workflow, create_route, create_quote, users,
):
    create_route()
    quote = create_quote(users.sales.user_id)
    quote_workflow.request_approval(quote.id, users.sales.user_id)

    rejected = quote_workflow.reject(quote.id, users.office.user_id, reason="値引き率を再確認")
    assert rejected.is_success
    assert mirror(fetch, quote.id) == DocumentApprovalStatus.REJECTED.value

    assert quote_workflow.cancel_approval(quote.id, users.sales.user_id).is_success
    assert mirror(fetch, quote.id) == DocumentApprovalStatus.DRAFT.value

    again = quote_workflow.request_approval(quote.id, users.sales.user_id)
    assert again.is_success
    assert again.value.attempt == 2


def test_failed_action_rolls_back_everything(
    session_factory, fetch, quote_workflow, create_route, create_quote, users,
):
    create_route()
    quote = create_quote(users.sales.user_id)
    quote_workflow.request_approval(quote.id, users.sales.user_id)

    # Drift the mirror so the final approval's mirror update cannot apply.
    with session_factory() as s:
        s.get(QuoteModel, quote.id).approval_status = DocumentApprovalStatus.DRAFT.value
        s.commit()

    result = quote_workflow.approve(quote.id, users.office.user_id)

    assert result.status == ActionStatus.INVALID_STATE
    assert result.error_code == "STALE_APPROVAL_STATE"
    instance = latest(session_factory, quote.id)
    assert instance.status == ApprovalInstanceStatus.PENDING
    assert instance.step(1).status == ApprovalStepStatus.PENDING


def test_mirror_stays_consistent_across_mixed_activity(
    session_factory, session, deterministic_clock, quote_workflow, create_quote, users,
):
    install_routes(session, load_approval_routes(), clock=deterministic_clock)
    session.commit()

    quotes = [
        create_quote(users.sales.user_id, total_amount=Decimal(amount))
        for amount in ("10000", "2500000", "50000", "1000000")
    ]
    for q in quotes:
        quote_workflow.request_approval(q.id, users.sales.user_id)

    quote_workflow.approve(quotes[0].id, users.office.user_id)
    quote_workflow.approve(quotes[1].id, users.office.user_id)
    quote_workflow.reject(quotes[2].id, users.office.user_id)
    quote_workflow.cancel_approval(quotes[3].id, users.office.user_id)
    quote_workflow.approve(quotes[1].id, users.sales.user_id)

    with session_factory() as s:
        selector = ApprovalSelector(s)
        assert selector.mirror_violations(DocumentType.QUOTE) == []
        assert selector.pending_step_report() == {}
        assert [i.document_id for i in selector.pending_for_role(UserRole.ADMIN)] == [
            quotes[1].id
        ]
