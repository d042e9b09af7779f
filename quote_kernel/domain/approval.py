"""
Approval domain types (``quote_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval workflow shared by quotes and purchase
orders: roles, the document approval mirror, the instance and step
lifecycles, route templates, live instances, and the pure consistency
checks used by selectors and tests.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``INSTANCE_TRANSITIONS`` defines the only valid instance status
  transitions.  Terminal states have no outgoing edges.
* Every instance step is created ``pending``; the active step of a pending
  instance is the pending step whose order equals ``current_step``, and
  no step ordered before it is still pending.
* ``MIRROR_STATUS_FOR_INSTANCE`` defines the document ``approval_status``
  each instance status implies.  A rejected instance also accepts a
  document returned to draft.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =========================================================================
# Roles and document types
# =========================================================================


class UserRole(str, Enum):
    """Fixed set of organisation roles."""

    SALES = "営業"
    SALES_ADMIN = "営業事務"
    ADMIN = "管理者"


BACK_OFFICE_ROLES: frozenset[UserRole] = frozenset({
    UserRole.SALES_ADMIN,
    UserRole.ADMIN,
})


class DocumentType(str, Enum):
    """Entity types that carry an approval workflow."""

    QUOTE = "quote"
    PURCHASE_ORDER = "purchase_order"


@dataclass(frozen=True)
class Caller:
    """Explicit identity of the user invoking an operation."""

    user_id: UUID
    role: UserRole

    @property
    def is_back_office(self) -> bool:
        return self.role in BACK_OFFICE_ROLES

    def may_act_for(self, creator_id: UUID) -> bool:
        """Creator of the document, or a back-office user acting for them."""
        return self.user_id == creator_id or self.is_back_office


# =========================================================================
# Status lifecycles
# =========================================================================


class DocumentApprovalStatus(str, Enum):
    """Denormalized ``approval_status`` carried on quotes and purchase orders."""

    DRAFT = "下書き"
    PENDING = "承認待ち"
    APPROVED = "承認済み"
    REJECTED = "却下"


# Mirror values from which a new approval may be requested.
REQUESTABLE_DOCUMENT_STATUSES: frozenset[DocumentApprovalStatus] = frozenset({
    DocumentApprovalStatus.DRAFT,
    DocumentApprovalStatus.REJECTED,
})


class ApprovalInstanceStatus(str, Enum):
    """Approval instance lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


INSTANCE_TRANSITIONS: dict[ApprovalInstanceStatus, frozenset[ApprovalInstanceStatus]] = {
    ApprovalInstanceStatus.PENDING: frozenset({
        ApprovalInstanceStatus.APPROVED,
        ApprovalInstanceStatus.REJECTED,
        ApprovalInstanceStatus.CANCELLED,
    }),
    ApprovalInstanceStatus.APPROVED: frozenset(),
    ApprovalInstanceStatus.REJECTED: frozenset(),
    ApprovalInstanceStatus.CANCELLED: frozenset(),
}

TERMINAL_INSTANCE_STATUSES: frozenset[ApprovalInstanceStatus] = frozenset({
    ApprovalInstanceStatus.APPROVED,
    ApprovalInstanceStatus.REJECTED,
    ApprovalInstanceStatus.CANCELLED,
})

# Latest-instance statuses that CancelApproval may return to draft.
CANCELLABLE_INSTANCE_STATUSES: frozenset[ApprovalInstanceStatus] = frozenset({
    ApprovalInstanceStatus.PENDING,
    ApprovalInstanceStatus.REJECTED,
})


def can_transition(
    current: ApprovalInstanceStatus,
    target: ApprovalInstanceStatus,
) -> bool:
    return target in INSTANCE_TRANSITIONS[current]


class ApprovalStepStatus(str, Enum):
    """Per-step decision states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


MIRROR_STATUS_FOR_INSTANCE: dict[ApprovalInstanceStatus, DocumentApprovalStatus] = {
    ApprovalInstanceStatus.PENDING: DocumentApprovalStatus.PENDING,
    ApprovalInstanceStatus.APPROVED: DocumentApprovalStatus.APPROVED,
    ApprovalInstanceStatus.REJECTED: DocumentApprovalStatus.REJECTED,
    ApprovalInstanceStatus.CANCELLED: DocumentApprovalStatus.DRAFT,
}


def allowed_mirror_statuses(
    latest_status: ApprovalInstanceStatus | None,
) -> frozenset[DocumentApprovalStatus]:
    """Document mirror values consistent with the latest instance status."""
    if latest_status is None:
        return frozenset({DocumentApprovalStatus.DRAFT})
    if latest_status == ApprovalInstanceStatus.REJECTED:
        return frozenset({
            DocumentApprovalStatus.REJECTED,
            DocumentApprovalStatus.DRAFT,
        })
    return frozenset({MIRROR_STATUS_FOR_INSTANCE[latest_status]})


def is_mirror_consistent(
    mirror: DocumentApprovalStatus,
    latest_status: ApprovalInstanceStatus | None,
) -> bool:
    return mirror in allowed_mirror_statuses(latest_status)


# =========================================================================
# Route templates
# =========================================================================


@dataclass(frozen=True)
class ApprovalRouteStep:
    """One approver step of a route (1-based, contiguous ``step_order``)."""

    step_order: int
    approver_role: UserRole
    notes: str | None = None


@dataclass(frozen=True)
class ApprovalRoute:
    """A named, ordered template of approval steps for one document type.

    ``requester_role`` and the amount band narrow which requests the route
    applies to; ``None`` means unrestricted.
    """

    route_id: UUID
    name: str
    target_type: DocumentType
    steps: tuple[ApprovalRouteStep, ...] = ()
    description: str | None = None
    requester_role: UserRole | None = None
    min_total_amount: Decimal | None = None
    max_total_amount: Decimal | None = None
    is_active: bool = True

    @property
    def first_step_order(self) -> int | None:
        if not self.steps:
            return None
        return min(s.step_order for s in self.steps)


# =========================================================================
# Live instances
# =========================================================================


@dataclass(frozen=True)
class ApprovalInstanceStep:
    """Per-instance decision record copied from a route step."""

    step_id: UUID
    step_order: int
    approver_role: UserRole
    status: ApprovalStepStatus
    decided_by: UUID | None = None
    decided_at: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ApprovalInstance:
    """The live approval process of one document."""

    instance_id: UUID
    document_type: DocumentType
    document_id: UUID
    route_id: UUID
    attempt: int
    status: ApprovalInstanceStatus
    current_step: int | None
    requested_by: UUID
    requested_at: datetime
    updated_at: datetime | None = None
    rejection_reason: str | None = None
    steps: tuple[ApprovalInstanceStep, ...] = field(default=())

    @property
    def is_active(self) -> bool:
        return self.status == ApprovalInstanceStatus.PENDING

    @property
    def pending_step(self) -> ApprovalInstanceStep | None:
        """The step awaiting a decision, or None."""
        if self.current_step is None:
            return None
        for step in self.steps:
            if (
                step.step_order == self.current_step
                and step.status == ApprovalStepStatus.PENDING
            ):
                return step
        return None

    def step(self, step_order: int) -> ApprovalInstanceStep | None:
        for s in self.steps:
            if s.step_order == step_order:
                return s
        return None


def pending_step_violations(instance: ApprovalInstance) -> list[str]:
    """Describe every way ``instance`` breaks the pending-step invariant.

    An empty list means the instance is consistent:

    * pending: ``current_step`` points at a pending step, every earlier
      step is approved, and no later step has been decided.
    * terminal: ``current_step`` is None and no step is pending.
    * approved: every step is approved.
    """
    problems: list[str] = []
    steps = sorted(instance.steps, key=lambda s: s.step_order)

    if instance.status == ApprovalInstanceStatus.PENDING:
        if instance.current_step is None:
            return ["pending instance has no current_step"]
        if instance.pending_step is None:
            problems.append(
                f"no pending step at current_step={instance.current_step}"
            )
        for s in steps:
            if s.step_order < instance.current_step and s.status != ApprovalStepStatus.APPROVED:
                problems.append(
                    f"step {s.step_order} before current_step is {s.status.value}"
                )
            if s.step_order > instance.current_step and s.status != ApprovalStepStatus.PENDING:
                problems.append(
                    f"step {s.step_order} after current_step is {s.status.value}"
                )
        return problems

    if instance.current_step is not None:
        problems.append(
            f"{instance.status.value} instance has current_step={instance.current_step}"
        )
    for s in steps:
        if s.status == ApprovalStepStatus.PENDING:
            problems.append(f"step {s.step_order} pending on {instance.status.value} instance")
    if instance.status == ApprovalInstanceStatus.APPROVED:
        for s in steps:
            if s.status != ApprovalStepStatus.APPROVED:
                problems.append(f"step {s.step_order} is {s.status.value} on approved instance")
    return problems
