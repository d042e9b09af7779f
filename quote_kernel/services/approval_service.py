"""
quote_kernel.services.approval_service -- Approval instance state machine.

Responsibility:
    Drives the approval lifecycle of one document type: request, approve,
    reject and cancel.  The document type is abstracted behind a
    ``DocumentAdapter``, so quotes and purchase orders share every
    transition rule.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and sibling
    services.  Flushes only; the caller owns the transaction.

Invariants enforced:
    - At most one pending instance per document (service check plus the
      partial unique index).
    - The document's approval_status mirror moves in the same transaction
      as the instance, via conditional updates on the expected mirror.
    - Every step and instance write is a conditional UPDATE re-checking
      the expected status (and current_step), so two racing decisions on
      the same step produce exactly one winner.  The loser gets
      ``StaleApprovalStateError``; nothing is retried.
    - A zero-step route never creates an instance.

Failure modes:
    - DocumentNotFoundError if the document does not exist.
    - NotDocumentOwnerError / ApproverRoleMismatchError (Unauthorized).
    - ActiveApprovalExistsError, ApprovalNotPendingError,
      ApprovalNotCancellableError, PendingStepMissingError,
      StaleApprovalStateError, InvalidDocumentStateError (InvalidState).
    - NoMatchingRouteError, EmptyRouteError (Configuration).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quote_kernel.domain.approval import (
    CANCELLABLE_INSTANCE_STATUSES,
    REQUESTABLE_DOCUMENT_STATUSES,
    ApprovalInstance,
    ApprovalInstanceStatus,
    ApprovalStepStatus,
    Caller,
    DocumentApprovalStatus,
    can_transition,
)
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.exceptions import (
    ActiveApprovalExistsError,
    ApprovalNotCancellableError,
    ApprovalNotPendingError,
    ApproverRoleMismatchError,
    EmptyRouteError,
    InvalidDocumentStateError,
    NotDocumentOwnerError,
    PendingStepMissingError,
    StaleApprovalStateError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.approval import (
    ApprovalInstanceModel,
    ApprovalInstanceStepModel,
)
from quote_kernel.services.approval_route_service import ApprovalRouteService
from quote_kernel.services.documents import DocumentAdapter

logger = get_logger("services.approval")


class ApprovalService:
    """Approval lifecycle for the documents served by one adapter."""

    def __init__(
        self,
        session: Session,
        adapter: DocumentAdapter,
        clock: Clock | None = None,
        routes: ApprovalRouteService | None = None,
    ) -> None:
        self._session = session
        self._adapter = adapter
        self._clock = clock or SystemClock()
        self._routes = routes or ApprovalRouteService(session, self._clock)

    @property
    def document_type(self):
        return self._adapter.document_type

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_latest_instance(self, document_id: UUID) -> ApprovalInstance | None:
        model = self._latest_instance_model(document_id)
        return model.to_dto() if model is not None else None

    def get_active_instance(self, document_id: UUID) -> ApprovalInstance | None:
        model = self._pending_instance_model(document_id)
        return model.to_dto() if model is not None else None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def request_approval(self, document_id: UUID, caller: Caller) -> ApprovalInstance:
        """Start a new approval instance from the matching route.

        Preconditions:
            - caller is the creator or a back-office user.
            - no pending instance exists for the document.
            - the mirror is 下書き or 却下.
        """
        document = self._adapter.load(document_id)
        if not caller.may_act_for(document.created_by):
            raise NotDocumentOwnerError(
                self.document_type.value, str(document_id), str(caller.user_id),
            )

        active = self._pending_instance_model(document_id)
        if active is not None:
            raise ActiveApprovalExistsError(
                self.document_type.value, str(document_id), str(active.id),
            )

        if document.approval_status not in REQUESTABLE_DOCUMENT_STATUSES:
            raise InvalidDocumentStateError(
                self.document_type.value,
                str(document_id),
                document.approval_status.value,
                tuple(sorted(s.value for s in REQUESTABLE_DOCUMENT_STATUSES)),
            )

        route = self._routes.select_route(
            self.document_type, caller.role, document.total_amount,
        )
        if not route.steps:
            raise EmptyRouteError(str(route.route_id), route.name)

        now = self._clock.now_utc()
        model = ApprovalInstanceModel(
            document_type=self.document_type.value,
            document_id=document_id,
            route_id=route.route_id,
            attempt=self._next_attempt(document_id),
            status=ApprovalInstanceStatus.PENDING.value,
            current_step=route.first_step_order,
            requested_by=caller.user_id,
            requested_at=now,
            updated_at=now,
        )
        model.steps = [
            ApprovalInstanceStepModel(
                step_order=step.step_order,
                approver_role=step.approver_role.value,
                status=ApprovalStepStatus.PENDING.value,
            )
            for step in route.steps
        ]
        self._session.add(model)
        try:
            self._session.flush()
        except IntegrityError as exc:
            # Another request for the same document committed first.
            raise ActiveApprovalExistsError(
                self.document_type.value, str(document_id),
            ) from exc

        self._adapter.set_approval_status(
            document_id,
            DocumentApprovalStatus.PENDING,
            expected=REQUESTABLE_DOCUMENT_STATUSES,
            actor_id=caller.user_id,
        )
        self._adapter.on_requested(document_id, caller)

        logger.info(
            "approval_requested",
            extra={
                "instance_id": str(model.id),
                "route_id": str(route.route_id),
                "route_name": route.name,
                "attempt": model.attempt,
                "step_count": len(route.steps),
            },
        )
        return model.to_dto()

    def approve(self, document_id: UUID, caller: Caller) -> ApprovalInstance:
        """Approve the current step; completes the instance on the last step."""
        instance = self._require_pending_instance(document_id)
        step = self._require_current_step(instance)
        self._require_approver(instance, step, caller)

        now = self._clock.now_utc()
        self._decide_step(step, ApprovalStepStatus.APPROVED, caller, now)

        next_order = self._next_pending_order(instance, step.step_order)
        if next_order is not None:
            self._move_instance(
                instance,
                expected_step=step.step_order,
                now=now,
                current_step=next_order,
            )
            logger.info(
                "approval_step_approved",
                extra={
                    "instance_id": str(instance.id),
                    "step_order": step.step_order,
                    "next_step": next_order,
                },
            )
            return instance.to_dto()

        self._move_instance(
            instance,
            expected_step=step.step_order,
            now=now,
            status=ApprovalInstanceStatus.APPROVED,
            current_step=None,
        )
        self._adapter.set_approval_status(
            document_id,
            DocumentApprovalStatus.APPROVED,
            expected=(DocumentApprovalStatus.PENDING,),
            actor_id=caller.user_id,
            decided_at=now,
        )
        self._adapter.on_approved(document_id, caller)

        logger.info(
            "approval_completed",
            extra={
                "instance_id": str(instance.id),
                "step_order": step.step_order,
            },
        )
        return instance.to_dto()

    def reject(
        self,
        document_id: UUID,
        caller: Caller,
        reason: str | None = None,
    ) -> ApprovalInstance:
        """Reject the current step, terminating the instance."""
        instance = self._require_pending_instance(document_id)
        step = self._require_current_step(instance)
        self._require_approver(instance, step, caller)

        reason = reason.strip() if reason and reason.strip() else None
        now = self._clock.now_utc()
        self._decide_step(step, ApprovalStepStatus.REJECTED, caller, now, notes=reason)
        self._move_instance(
            instance,
            expected_step=step.step_order,
            now=now,
            status=ApprovalInstanceStatus.REJECTED,
            current_step=None,
            rejection_reason=reason,
        )
        self._skip_pending_steps(instance)
        self._adapter.set_approval_status(
            document_id,
            DocumentApprovalStatus.REJECTED,
            expected=(DocumentApprovalStatus.PENDING,),
            actor_id=caller.user_id,
        )
        self._adapter.on_rejected(document_id, caller)

        logger.info(
            "approval_rejected",
            extra={
                "instance_id": str(instance.id),
                "step_order": step.step_order,
                "has_reason": reason is not None,
            },
        )
        return instance.to_dto()

    def cancel_approval(self, document_id: UUID, caller: Caller) -> None:
        """Return the document to draft.

        A pending instance is marked cancelled (never deleted); a rejected
        instance stays rejected and only the mirror moves back to 下書き.
        """
        document = self._adapter.load(document_id)
        if not caller.may_act_for(document.created_by):
            raise NotDocumentOwnerError(
                self.document_type.value, str(document_id), str(caller.user_id),
            )

        instance = self._latest_instance_model(document_id)
        status = ApprovalInstanceStatus(instance.status) if instance is not None else None
        if status not in CANCELLABLE_INSTANCE_STATUSES:
            raise ApprovalNotCancellableError(
                self.document_type.value,
                str(document_id),
                status.value if status is not None else None,
            )

        now = self._clock.now_utc()
        if status == ApprovalInstanceStatus.PENDING:
            self._move_instance(
                instance,
                expected_step=instance.current_step,
                now=now,
                status=ApprovalInstanceStatus.CANCELLED,
                current_step=None,
            )
            self._skip_pending_steps(instance)
            expected = (DocumentApprovalStatus.PENDING,)
        else:
            expected = (DocumentApprovalStatus.REJECTED, DocumentApprovalStatus.DRAFT)

        self._adapter.set_approval_status(
            document_id,
            DocumentApprovalStatus.DRAFT,
            expected=expected,
            actor_id=caller.user_id,
        )
        self._adapter.on_cancelled(document_id, caller)

        logger.info(
            "approval_cancelled",
            extra={
                "instance_id": str(instance.id),
                "previous_status": status.value,
            },
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _instances_stmt(self, document_id: UUID):
        return select(ApprovalInstanceModel).where(
            ApprovalInstanceModel.document_type == self.document_type.value,
            ApprovalInstanceModel.document_id == document_id,
        )

    def _latest_instance_model(self, document_id: UUID) -> ApprovalInstanceModel | None:
        return self._session.scalars(
            self._instances_stmt(document_id)
            .order_by(ApprovalInstanceModel.attempt.desc())
            .limit(1)
        ).first()

    def _pending_instance_model(self, document_id: UUID) -> ApprovalInstanceModel | None:
        return self._session.scalars(
            self._instances_stmt(document_id).where(
                ApprovalInstanceModel.status == ApprovalInstanceStatus.PENDING.value,
            )
        ).first()

    def _next_attempt(self, document_id: UUID) -> int:
        current = self._session.scalar(
            select(func.max(ApprovalInstanceModel.attempt)).where(
                ApprovalInstanceModel.document_type == self.document_type.value,
                ApprovalInstanceModel.document_id == document_id,
            )
        )
        return (current or 0) + 1

    def _require_pending_instance(self, document_id: UUID) -> ApprovalInstanceModel:
        instance = self._pending_instance_model(document_id)
        if instance is None:
            # Make sure the document itself exists before reporting state.
            self._adapter.load(document_id)
            latest = self._latest_instance_model(document_id)
            raise ApprovalNotPendingError(
                self.document_type.value,
                str(document_id),
                latest.status if latest is not None else None,
            )
        return instance

    def _require_current_step(
        self, instance: ApprovalInstanceModel,
    ) -> ApprovalInstanceStepModel:
        for step in instance.steps:
            if (
                step.step_order == instance.current_step
                and step.status == ApprovalStepStatus.PENDING.value
            ):
                return step
        raise PendingStepMissingError(str(instance.id), instance.current_step)

    def _require_approver(
        self,
        instance: ApprovalInstanceModel,
        step: ApprovalInstanceStepModel,
        caller: Caller,
    ) -> None:
        if caller.role.value != step.approver_role:
            raise ApproverRoleMismatchError(
                str(instance.id), step.step_order, step.approver_role, caller.role.value,
            )

    @staticmethod
    def _next_pending_order(instance: ApprovalInstanceModel, after: int) -> int | None:
        orders = [
            s.step_order
            for s in instance.steps
            if s.step_order > after and s.status == ApprovalStepStatus.PENDING.value
        ]
        return min(orders) if orders else None

    def _decide_step(
        self,
        step: ApprovalInstanceStepModel,
        decision: ApprovalStepStatus,
        caller: Caller,
        now: datetime,
        notes: str | None = None,
    ) -> None:
        result = self._session.execute(
            update(ApprovalInstanceStepModel)
            .where(
                ApprovalInstanceStepModel.id == step.id,
                ApprovalInstanceStepModel.status == ApprovalStepStatus.PENDING.value,
            )
            .values(
                status=decision.value,
                decided_by=caller.user_id,
                decided_at=now,
                notes=notes,
            )
        )
        if result.rowcount != 1:
            raise StaleApprovalStateError(
                "ApprovalInstanceStep", str(step.id), ApprovalStepStatus.PENDING.value,
            )

    def _move_instance(
        self,
        instance: ApprovalInstanceModel,
        *,
        expected_step: int | None,
        now: datetime,
        current_step: int | None,
        status: ApprovalInstanceStatus | None = None,
        rejection_reason: str | None = None,
    ) -> None:
        values: dict = {"current_step": current_step, "updated_at": now}
        if status is not None:
            if not can_transition(ApprovalInstanceStatus(instance.status), status):
                raise ApprovalNotPendingError(
                    self.document_type.value, str(instance.document_id), instance.status,
                )
            values["status"] = status.value
        if rejection_reason is not None:
            values["rejection_reason"] = rejection_reason

        if expected_step is None:
            step_clause = ApprovalInstanceModel.current_step.is_(None)
        else:
            step_clause = ApprovalInstanceModel.current_step == expected_step

        result = self._session.execute(
            update(ApprovalInstanceModel)
            .where(
                ApprovalInstanceModel.id == instance.id,
                ApprovalInstanceModel.status == ApprovalInstanceStatus.PENDING.value,
                step_clause,
            )
            .values(**values)
        )
        if result.rowcount != 1:
            raise StaleApprovalStateError(
                "ApprovalInstance",
                str(instance.id),
                f"pending at step {expected_step}",
            )

    def _skip_pending_steps(self, instance: ApprovalInstanceModel) -> None:
        self._session.execute(
            update(ApprovalInstanceStepModel)
            .where(
                ApprovalInstanceStepModel.instance_id == instance.id,
                ApprovalInstanceStepModel.status == ApprovalStepStatus.PENDING.value,
            )
            .values(status=ApprovalStepStatus.SKIPPED.value)
        )
