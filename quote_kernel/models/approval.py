"""
Module: quote_kernel.models.approval
Responsibility: ORM persistence for approval routes (templates) and approval
    instances (live, per-document copies of a route).

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(route_id, step_order) and UNIQUE(instance_id, step_order):
      no two steps share an order.
    - At most one pending instance per document: partial unique index on
      (document_type, document_id) WHERE status = 'pending'.
    - UNIQUE(document_type, document_id, attempt): re-requests create a new
      instance with the next attempt number; "most recent" is the highest
      attempt.
    - Status values are closed enums (check constraints).

Failure modes:
    - IntegrityError on a second pending instance for the same document
      (two RequestApproval calls racing).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from quote_kernel.domain.approval import (
        ApprovalInstance,
        ApprovalInstanceStep,
        ApprovalRoute,
        ApprovalRouteStep,
    )

_ROLE_CHECK = "IN ('営業', '営業事務', '管理者')"
_DOCUMENT_TYPE_CHECK = "IN ('quote', 'purchase_order')"


class ApprovalRouteModel(Base):
    """Named approval template.

    Contract:
        Routes are never edited or deleted once created; a changed route is
        a new row and the old one is deactivated.
    """

    __tablename__ = "approval_routes"

    __table_args__ = (
        CheckConstraint(
            f"target_type {_DOCUMENT_TYPE_CHECK}",
            name="ck_approval_routes_target_type",
        ),
        CheckConstraint(
            f"requester_role IS NULL OR requester_role {_ROLE_CHECK}",
            name="ck_approval_routes_requester_role",
        ),
        Index("idx_approval_routes_target_active", "target_type", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_type: Mapped[str] = mapped_column(String(30), nullable=False)
    requester_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    min_total_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True,
    )
    max_total_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    steps: Mapped[list[ApprovalRouteStepModel]] = relationship(
        "ApprovalRouteStepModel",
        back_populates="route",
        cascade="all, delete-orphan",
        order_by="ApprovalRouteStepModel.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRoute {self.name!r} target={self.target_type} "
            f"active={self.is_active}>"
        )

    def to_dto(self) -> ApprovalRoute:
        """Convert ORM model to frozen domain DTO."""
        from quote_kernel.domain.approval import (
            ApprovalRoute as ApprovalRouteDTO,
            DocumentType,
            UserRole,
        )

        return ApprovalRouteDTO(
            route_id=self.id,
            name=self.name,
            target_type=DocumentType(self.target_type),
            steps=tuple(s.to_dto() for s in sorted(self.steps, key=lambda s: s.step_order)),
            description=self.description,
            requester_role=UserRole(self.requester_role) if self.requester_role else None,
            min_total_amount=self.min_total_amount,
            max_total_amount=self.max_total_amount,
            is_active=self.is_active,
        )


class ApprovalRouteStepModel(Base):
    """One approver step of a route."""

    __tablename__ = "approval_route_steps"

    __table_args__ = (
        UniqueConstraint("route_id", "step_order", name="uq_approval_route_steps_order"),
        CheckConstraint("step_order >= 1", name="ck_approval_route_steps_positive"),
        CheckConstraint(
            f"approver_role {_ROLE_CHECK}",
            name="ck_approval_route_steps_role",
        ),
    )

    route_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("approval_routes.id"), nullable=False,
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    route: Mapped[ApprovalRouteModel] = relationship(
        "ApprovalRouteModel", back_populates="steps",
    )

    def to_dto(self) -> ApprovalRouteStep:
        from quote_kernel.domain.approval import ApprovalRouteStep, UserRole

        return ApprovalRouteStep(
            step_order=self.step_order,
            approver_role=UserRole(self.approver_role),
            notes=self.notes,
        )


class ApprovalInstanceModel(Base):
    """Live approval process of one document.

    Contract:
        Never deleted.  Status moves only along INSTANCE_TRANSITIONS, and
        every move is a conditional UPDATE on the expected status and
        current_step.
    """

    __tablename__ = "approval_instances"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="ck_approval_instances_status",
        ),
        CheckConstraint(
            f"document_type {_DOCUMENT_TYPE_CHECK}",
            name="ck_approval_instances_document_type",
        ),
        UniqueConstraint(
            "document_type", "document_id", "attempt",
            name="uq_approval_instances_attempt",
        ),
        Index(
            "uq_approval_instances_one_pending",
            "document_type", "document_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_approval_instances_status", "status", "current_step"),
    )

    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    document_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    route_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("approval_routes.id"), nullable=False,
    )
    attempt: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    current_step: Mapped[int | None] = mapped_column(Integer, nullable=True)
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    steps: Mapped[list[ApprovalInstanceStepModel]] = relationship(
        "ApprovalInstanceStepModel",
        back_populates="instance",
        cascade="all, delete-orphan",
        order_by="ApprovalInstanceStepModel.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalInstance {self.id} {self.document_type}/{self.document_id} "
            f"attempt={self.attempt} status={self.status} step={self.current_step}>"
        )

    def to_dto(self) -> ApprovalInstance:
        """Convert ORM model to frozen domain DTO."""
        from quote_kernel.domain.approval import (
            ApprovalInstance as ApprovalInstanceDTO,
            ApprovalInstanceStatus,
            DocumentType,
        )
        from quote_kernel.domain.dates import ensure_utc, ensure_utc_or_none

        return ApprovalInstanceDTO(
            instance_id=self.id,
            document_type=DocumentType(self.document_type),
            document_id=self.document_id,
            route_id=self.route_id,
            attempt=self.attempt,
            status=ApprovalInstanceStatus(self.status),
            current_step=self.current_step,
            requested_by=self.requested_by,
            requested_at=ensure_utc(self.requested_at),
            updated_at=ensure_utc_or_none(self.updated_at),
            rejection_reason=self.rejection_reason,
            steps=tuple(s.to_dto() for s in sorted(self.steps, key=lambda s: s.step_order)),
        )


class ApprovalInstanceStepModel(Base):
    """Per-instance decision record copied from a route step."""

    __tablename__ = "approval_instance_steps"

    __table_args__ = (
        UniqueConstraint(
            "instance_id", "step_order",
            name="uq_approval_instance_steps_order",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'skipped')",
            name="ck_approval_instance_steps_status",
        ),
        CheckConstraint(
            f"approver_role {_ROLE_CHECK}",
            name="ck_approval_instance_steps_role",
        ),
    )

    instance_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("approval_instances.id"), nullable=False,
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    decided_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    instance: Mapped[ApprovalInstanceModel] = relationship(
        "ApprovalInstanceModel", back_populates="steps",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalInstanceStep {self.instance_id}#{self.step_order} "
            f"role={self.approver_role} status={self.status}>"
        )

    def to_dto(self) -> ApprovalInstanceStep:
        from quote_kernel.domain.approval import (
            ApprovalInstanceStep as ApprovalInstanceStepDTO,
            ApprovalStepStatus,
            UserRole,
        )
        from quote_kernel.domain.dates import ensure_utc_or_none

        return ApprovalInstanceStepDTO(
            step_id=self.id,
            step_order=self.step_order,
            approver_role=UserRole(self.approver_role),
            status=ApprovalStepStatus(self.status),
            decided_by=self.decided_by,
            decided_at=ensure_utc_or_none(self.decided_at),
            notes=self.notes,
        )
