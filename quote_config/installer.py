"""
Route installation (``quote_config.installer``).

Responsibility
--------------
Persists a validated ``ApprovalRouteSet`` through ``ApprovalRouteService``.
A route whose name already exists for the same target type is replaced:
the old row is deactivated (never edited), so approval instances that
reference it keep their history.

Flushes only; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from quote_config.schema import ApprovalRouteDef, ApprovalRouteSet
from quote_config.validator import parse_amount, validate_route_set
from quote_kernel.domain.approval import (
    ApprovalRoute,
    ApprovalRouteStep,
    DocumentType,
    UserRole,
)
from quote_kernel.domain.clock import Clock
from quote_kernel.services.approval_route_service import ApprovalRouteService

_logger = logging.getLogger("quote_kernel.config")


def route_steps(route: ApprovalRouteDef) -> list[ApprovalRouteStep]:
    return [
        ApprovalRouteStep(
            step_order=s.step_order,
            approver_role=UserRole(s.approver_role),
            notes=s.notes,
        )
        for s in route.steps
    ]


def install_routes(
    session: Session,
    route_set: ApprovalRouteSet,
    actor_id: UUID | None = None,
    clock: Clock | None = None,
) -> list[ApprovalRoute]:
    """Install every route in ``route_set``.

    Raises:
        ValueError: if the route set does not validate.
    """
    result = validate_route_set(route_set)
    if not result.is_valid:
        raise ValueError(
            "Approval route configuration is invalid:\n  "
            + "\n  ".join(result.errors)
        )
    for warning in result.warnings:
        _logger.warning("approval_route_config_warning", extra={"detail": warning})

    service = ApprovalRouteService(session, clock)
    installed: list[ApprovalRoute] = []
    for route in route_set.routes:
        installed.append(
            service.replace_route(
                route.name,
                DocumentType(route.target_type),
                route_steps(route),
                description=route.description,
                requester_role=(
                    UserRole(route.requester_role) if route.requester_role else None
                ),
                min_total_amount=parse_amount(route.min_total_amount),
                max_total_amount=parse_amount(route.max_total_amount),
                actor_id=actor_id,
            )
        )

    _logger.info(
        "approval_routes_installed",
        extra={
            "route_count": len(installed),
            "config_version": route_set.version,
            "checksum": route_set.checksum,
        },
    )
    return installed
