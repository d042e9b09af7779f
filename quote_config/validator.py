"""
Configuration Validator (``quote_config.validator``).

Responsibility
--------------
Validates an ``ApprovalRouteSet`` before it is installed.

Invariants enforced
-------------------
* Route name uniqueness per target type.
* Known target types and roles (the ``UserRole`` / ``DocumentType`` enums).
* Step orders 1..N, contiguous and unique.
* Amount bands parse as decimals and are not inverted.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the route set
  MUST NOT be installed.
* Validation warnings (``ConfigValidationResult.warnings``)  -> installable
  but should be reviewed (zero-step routes, uncovered target types).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from quote_config.schema import ApprovalRouteDef, ApprovalRouteSet
from quote_engines.route_matching import validate_amount_band, validate_step_orders
from quote_kernel.domain.approval import DocumentType, UserRole

_ROLES = {r.value for r in UserRole}
_TARGET_TYPES = {t.value for t in DocumentType}


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def parse_amount(value: str | None) -> Decimal | None:
    """Parse an authored amount; raises ValueError when it is not a number."""
    if value is None:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"not a decimal amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return amount


def validate_route(route: ApprovalRouteDef, result: ConfigValidationResult) -> None:
    """Validate one route, appending problems to ``result``."""
    prefix = f"route {route.name!r}"

    if not route.name.strip():
        result.add_error("route with empty name")
    if route.target_type not in _TARGET_TYPES:
        result.add_error(f"{prefix}: unknown target_type {route.target_type!r}")
    if route.requester_role is not None and route.requester_role not in _ROLES:
        result.add_error(f"{prefix}: unknown requester_role {route.requester_role!r}")

    for step in route.steps:
        if step.approver_role not in _ROLES:
            result.add_error(
                f"{prefix}: step {step.step_order} has unknown approver_role "
                f"{step.approver_role!r}"
            )
    for problem in validate_step_orders(s.step_order for s in route.steps):
        result.add_error(f"{prefix}: {problem}")

    try:
        low = parse_amount(route.min_total_amount)
        high = parse_amount(route.max_total_amount)
    except ValueError as exc:
        result.add_error(f"{prefix}: {exc}")
    else:
        for problem in validate_amount_band(low, high):
            result.add_error(f"{prefix}: {problem}")

    if not route.steps:
        result.add_warning(f"{prefix}: has no steps and can never start an approval")


def validate_route_set(route_set: ApprovalRouteSet) -> ConfigValidationResult:
    """
    Validate a route set.

    Postconditions:
        - Returns a ``ConfigValidationResult``; ``is_valid`` is ``True``
          only when no errors were found.
    """
    result = ConfigValidationResult()

    seen: set[tuple[str, str]] = set()
    for route in route_set.routes:
        key = (route.target_type, route.name)
        if key in seen:
            result.add_error(
                f"duplicate route name {route.name!r} for {route.target_type}"
            )
        seen.add(key)
        validate_route(route, result)

    covered = {r.target_type for r in route_set.routes if r.steps}
    for target in sorted(_TARGET_TYPES - covered):
        result.add_warning(f"no usable route for target_type {target!r}")

    return result
