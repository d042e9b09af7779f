"""
Database-level guarantees of the approval and procurement tables.

- Procurement log rows are append-only (ORM listeners).
- At most one pending approval instance per document (partial unique index).
- Attempts are unique per document.
- Status columns are closed enums (check constraints).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from quote_kernel.domain.approval import DocumentType
from quote_kernel.exceptions import ImmutabilityViolationError
from quote_kernel.models.approval import ApprovalInstanceModel
from quote_kernel.models.procurement_log import ProcurementLogModel

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def make_instance(route_id, document_id, attempt, status="pending", current_step=1):
    return ApprovalInstanceModel(
        document_type=DocumentType.QUOTE.value,
        document_id=document_id,
        route_id=route_id,
        attempt=attempt,
        status=status,
        current_step=current_step,
        requested_by=uuid4(),
        requested_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def log_entry(session, users, create_quote):
    quote = create_quote(users.sales.user_id)
    entry = ProcurementLogModel(
        quote_item_id=quote.items[0].id,
        action_type="入荷",
        action_date=date(2025, 1, 6),
        quantity=Decimal("1"),
        performed_by=users.office.user_id,
        created_at=NOW,
    )
    session.add(entry)
    session.commit()
    return entry


class TestProcurementLogImmutability:
    def test_update_is_refused(self, session, log_entry):
        log_entry.quantity = Decimal("2")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"

    def test_delete_is_refused(self, session, log_entry):
        session.delete(log_entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestApprovalInstanceConstraints:
    def test_second_pending_instance_is_refused(self, session, create_route):
        route = create_route()
        document_id = uuid4()
        session.add(make_instance(route.route_id, document_id, attempt=1))
        session.flush()

        session.add(make_instance(route.route_id, document_id, attempt=2))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_terminal_instances_do_not_block_a_new_pending_one(self, session, create_route):
        route = create_route()
        document_id = uuid4()
        session.add_all([
            make_instance(route.route_id, document_id, 1, status="rejected", current_step=None),
            make_instance(route.route_id, document_id, 2, status="cancelled", current_step=None),
            make_instance(route.route_id, document_id, 3),
        ])
        session.flush()

    def test_attempt_is_unique_per_document(self, session, create_route):
        route = create_route()
        document_id = uuid4()
        session.add_all([
            make_instance(route.route_id, document_id, 1, status="rejected", current_step=None),
            make_instance(route.route_id, document_id, 1, status="cancelled", current_step=None),
        ])
        with pytest.raises(IntegrityError):
            session.flush()

    def test_unknown_status_is_refused(self, session, create_route):
        route = create_route()
        session.add(make_instance(route.route_id, uuid4(), 1, status="on_hold"))
        with pytest.raises(IntegrityError):
            session.flush()
