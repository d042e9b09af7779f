"""
Module: quote_kernel.selectors.approval_selector
Responsibility: Read-side queries over approval instances: the approver inbox,
    per-document history, and the consistency reports used by operations
    and tests to detect rot in the instance/mirror invariants.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, select

from quote_kernel.domain.approval import (
    ApprovalInstance,
    ApprovalInstanceStatus,
    ApprovalStepStatus,
    DocumentApprovalStatus,
    DocumentType,
    UserRole,
    allowed_mirror_statuses,
    pending_step_violations,
)
from quote_kernel.models.approval import ApprovalInstanceModel, ApprovalInstanceStepModel
from quote_kernel.models.documents import PurchaseOrderModel, QuoteModel
from quote_kernel.selectors.base import BaseSelector

_DOCUMENT_MODELS = {
    DocumentType.QUOTE: QuoteModel,
    DocumentType.PURCHASE_ORDER: PurchaseOrderModel,
}


@dataclass(frozen=True)
class MirrorViolation:
    document_type: DocumentType
    document_id: UUID
    approval_status: DocumentApprovalStatus
    latest_status: ApprovalInstanceStatus | None


class ApprovalSelector(BaseSelector[ApprovalInstanceModel]):
    """Read-only approval queries."""

    def pending_for_role(
        self,
        role: UserRole,
        document_type: DocumentType | None = None,
    ) -> list[ApprovalInstance]:
        """Pending instances whose current step awaits ``role``, oldest first."""
        stmt = (
            select(ApprovalInstanceModel)
            .join(
                ApprovalInstanceStepModel,
                and_(
                    ApprovalInstanceStepModel.instance_id == ApprovalInstanceModel.id,
                    ApprovalInstanceStepModel.step_order == ApprovalInstanceModel.current_step,
                ),
            )
            .where(
                ApprovalInstanceModel.status == ApprovalInstanceStatus.PENDING.value,
                ApprovalInstanceStepModel.status == ApprovalStepStatus.PENDING.value,
                ApprovalInstanceStepModel.approver_role == role.value,
            )
            .order_by(ApprovalInstanceModel.requested_at, ApprovalInstanceModel.id)
        )
        if document_type is not None:
            stmt = stmt.where(ApprovalInstanceModel.document_type == document_type.value)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def instance_history(
        self,
        document_type: DocumentType,
        document_id: UUID,
    ) -> list[ApprovalInstance]:
        """Every instance of a document, oldest attempt first."""
        stmt = (
            select(ApprovalInstanceModel)
            .where(
                ApprovalInstanceModel.document_type == document_type.value,
                ApprovalInstanceModel.document_id == document_id,
            )
            .order_by(ApprovalInstanceModel.attempt)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def latest_instance(
        self,
        document_type: DocumentType,
        document_id: UUID,
    ) -> ApprovalInstance | None:
        history = self.instance_history(document_type, document_id)
        return history[-1] if history else None

    def pending_step_report(self) -> dict[UUID, list[str]]:
        """Instances breaking the pending-step invariant, with the problems found."""
        report: dict[UUID, list[str]] = {}
        for model in self.session.scalars(select(ApprovalInstanceModel)):
            problems = pending_step_violations(model.to_dto())
            if problems:
                report[model.id] = problems
        return report

    def mirror_violations(self, document_type: DocumentType) -> list[MirrorViolation]:
        """Documents whose approval_status disagrees with their latest instance."""
        model = _DOCUMENT_MODELS[document_type]
        violations: list[MirrorViolation] = []
        for document_id, mirror in self.session.execute(
            select(model.id, model.approval_status)
        ):
            latest = self.latest_instance(document_type, document_id)
            latest_status = latest.status if latest is not None else None
            approval_status = DocumentApprovalStatus(mirror)
            if approval_status not in allowed_mirror_statuses(latest_status):
                violations.append(
                    MirrorViolation(document_type, document_id, approval_status, latest_status)
                )
        return violations
