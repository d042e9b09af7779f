"""
Configuration Schema (``quote_config.schema``).

Responsibility
--------------
Frozen dataclasses for YAML-authored approval routes.  Values are kept as
authored (strings for roles, amounts and target types); conversion to
domain types happens when routes are installed, after validation.

Architecture position
---------------------
**Config layer** -- pure data definitions.  No dependency on the kernel
services or engines.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ApprovalRouteStepDef:
    """YAML-authored approver step."""

    step_order: int
    approver_role: str
    notes: str | None = None


@dataclass(frozen=True)
class ApprovalRouteDef:
    """YAML-authored approval route."""

    name: str
    target_type: str
    steps: tuple[ApprovalRouteStepDef, ...] = ()
    description: str | None = None
    requester_role: str | None = None
    min_total_amount: str | None = None
    max_total_amount: str | None = None


@dataclass(frozen=True)
class ApprovalRouteSet:
    """A versioned collection of routes loaded from one file."""

    version: int
    routes: tuple[ApprovalRouteDef, ...] = ()
    description: str | None = None
    checksum: str = ""
