"""
quote_kernel.services.approval_route_service -- Approval route templates.

Responsibility:
    Retrieve, select, create and retire named approval routes.  Routes are
    read-only while approvals are being processed; creating and retiring
    them is an administrative operation.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and the pure
    route-matching engine.

Invariants enforced:
    - Step orders within a route are 1..N, contiguous and unique; approver
      roles are valid ``UserRole`` values.
    - Routes are never edited or deleted; replacing a route creates a new
      row and deactivates the old one, so instances that reference it keep
      their history.

Failure modes:
    - RouteNotFoundError if route_id not found.
    - InvalidRouteDefinitionError on malformed step orders, roles or bands.
    - NoMatchingRouteError when no active route matches a request.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_engines.route_matching import (
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
from quote_kernel.domain.clock import Clock
from quote_kernel.exceptions import (
    InvalidRouteDefinitionError,
    NoMatchingRouteError,
    RouteNotFoundError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.approval import ApprovalRouteModel, ApprovalRouteStepModel
from quote_kernel.services.base import BaseService

logger = get_logger("services.approval_routes")


class ApprovalRouteService(BaseService[ApprovalRouteModel]):
    """Reads and administers approval routes."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_route(self, route_id: UUID) -> ApprovalRoute:
        """Return a route with its steps ordered by step_order ascending."""
        model = self.session.get(ApprovalRouteModel, route_id)
        if model is None:
            raise RouteNotFoundError(str(route_id))
        return model.to_dto()

    def list_routes(
        self,
        target_type: DocumentType | None = None,
        active_only: bool = True,
    ) -> list[ApprovalRoute]:
        stmt = select(ApprovalRouteModel)
        if target_type is not None:
            stmt = stmt.where(ApprovalRouteModel.target_type == target_type.value)
        if active_only:
            stmt = stmt.where(ApprovalRouteModel.is_active.is_(True))
        stmt = stmt.order_by(ApprovalRouteModel.name, ApprovalRouteModel.created_at)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def select_route(
        self,
        target_type: DocumentType,
        requester_role: UserRole,
        total_amount: Decimal | None,
    ) -> ApprovalRoute:
        """Pick the route that governs a new approval request.

        Raises:
            NoMatchingRouteError: No active route matches.
        """
        route = select_matching_route(
            self.list_routes(target_type, active_only=True),
            target_type,
            requester_role,
            total_amount,
        )
        if route is None:
            raise NoMatchingRouteError(
                target_type.value,
                requester_role.value,
                str(total_amount) if total_amount is not None else None,
            )
        return route

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_route(
        self,
        name: str,
        target_type: DocumentType,
        steps: Sequence[ApprovalRouteStep],
        *,
        description: str | None = None,
        requester_role: UserRole | None = None,
        min_total_amount: Decimal | None = None,
        max_total_amount: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> ApprovalRoute:
        """Create a new active route.

        A route with no steps is accepted so configuration can be staged,
        but it can never start an approval.
        """
        problems = validate_step_orders(s.step_order for s in steps)
        problems.extend(validate_amount_band(min_total_amount, max_total_amount))
        for step in steps:
            if not isinstance(step.approver_role, UserRole):
                problems.append(
                    f"step {step.step_order} has invalid approver_role "
                    f"{step.approver_role!r}"
                )
        if not name or not name.strip():
            problems.append("name must not be empty")
        if problems:
            raise InvalidRouteDefinitionError(name, problems)

        model = ApprovalRouteModel(
            name=name.strip(),
            description=description,
            target_type=target_type.value,
            requester_role=requester_role.value if requester_role else None,
            min_total_amount=min_total_amount,
            max_total_amount=max_total_amount,
            is_active=True,
            created_at=self.clock.now_utc(),
            created_by_id=actor_id,
        )
        model.steps = [
            ApprovalRouteStepModel(
                step_order=step.step_order,
                approver_role=step.approver_role.value,
                notes=step.notes,
            )
            for step in sorted(steps, key=lambda s: s.step_order)
        ]
        self.session.add(model)
        self.session.flush()

        if not steps:
            logger.warning(
                "approval_route_without_steps",
                extra={"route_id": str(model.id), "route_name": model.name},
            )
        logger.info(
            "approval_route_created",
            extra={
                "route_id": str(model.id),
                "route_name": model.name,
                "target_type": target_type.value,
                "step_count": len(steps),
            },
        )
        return model.to_dto()

    def deactivate_route(self, route_id: UUID) -> ApprovalRoute:
        """Retire a route.  Existing instances keep referencing it."""
        model = self.session.get(ApprovalRouteModel, route_id)
        if model is None:
            raise RouteNotFoundError(str(route_id))
        if model.is_active:
            model.is_active = False
            self.session.flush()
            logger.info(
                "approval_route_deactivated",
                extra={"route_id": str(route_id), "route_name": model.name},
            )
        return model.to_dto()

    def replace_route(
        self,
        name: str,
        target_type: DocumentType,
        steps: Sequence[ApprovalRouteStep],
        **kwargs,
    ) -> ApprovalRoute:
        """Deactivate every active route of this name and type, then create anew."""
        existing = self.session.scalars(
            select(ApprovalRouteModel).where(
                ApprovalRouteModel.name == name,
                ApprovalRouteModel.target_type == target_type.value,
                ApprovalRouteModel.is_active.is_(True),
            )
        ).all()
        for model in existing:
            self.deactivate_route(model.id)
        return self.create_route(name, target_type, steps, **kwargs)
