"""
quote_engines.route_matching -- Pure approval route selection engine.

Responsibility:
    Decide which configured approval route applies to a request, and check
    that a route's step orders form a usable sequence.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import quote_kernel/domain/ types.

Invariants enforced:
    - Deterministic ordering: routes are sorted by lower amount bound
      (unbounded counts as zero), then by name, before evaluation;
      first match wins.
    - Step orders of a usable route are 1..N with no gaps or duplicates.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - Returns None from ``select_matching_route`` when nothing matches;
      the caller decides whether that is a configuration error.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from quote_kernel.domain.approval import ApprovalRoute, DocumentType, UserRole


def route_matches(
    route: ApprovalRoute,
    requester_role: UserRole,
    amount: Decimal | None,
) -> bool:
    """Check a single route against the requester's role and document total.

    Args:
        route: Candidate route.
        requester_role: Role of the user requesting approval.
        amount: Document total (None skips the amount band).

    Returns:
        True when the route is active, the requester role is unrestricted
        or equal, and the amount lies within [min, max] inclusive.
    """
    if not route.is_active:
        return False
    if route.requester_role is not None and route.requester_role != requester_role:
        return False
    if amount is None:
        return True
    if route.min_total_amount is not None and amount < route.min_total_amount:
        return False
    if route.max_total_amount is not None and amount > route.max_total_amount:
        return False
    return True


def select_matching_route(
    routes: Iterable[ApprovalRoute],
    target_type: DocumentType,
    requester_role: UserRole,
    amount: Decimal | None,
) -> ApprovalRoute | None:
    """Select the first matching route for a document.

    Routes for other document types are ignored.  Candidates are sorted by
    ``min_total_amount`` ascending (None as zero) and then by name so the
    choice does not depend on storage order.

    Returns:
        The first matching route, or None if no route matches.
    """
    candidates = [r for r in routes if r.target_type == target_type]
    candidates.sort(key=_route_sort_key)

    for route in candidates:
        if route_matches(route, requester_role, amount):
            return route

    return None


def _route_sort_key(route: ApprovalRoute) -> tuple[Decimal, str]:
    return (route.min_total_amount or Decimal("0"), route.name)


def validate_step_orders(step_orders: Iterable[int]) -> list[str]:
    """Check that step orders are 1-based, contiguous and unique.

    An empty sequence is valid here: zero-step routes may be stored while
    configuration is incomplete, and are refused when an approval starts.

    Returns:
        Human-readable problems; an empty list means valid.
    """
    orders = list(step_orders)
    problems: list[str] = []

    seen: set[int] = set()
    for order in orders:
        if order in seen:
            problems.append(f"duplicate step_order {order}")
        seen.add(order)

    if any(o < 1 for o in orders):
        problems.append("step_order values must start at 1")

    expected = set(range(1, len(seen) + 1))
    if seen and seen != expected:
        missing = sorted(expected - seen)
        if missing:
            problems.append(
                "step_order values are not contiguous "
                f"(missing {', '.join(str(m) for m in missing)})"
            )

    return problems


def validate_amount_band(
    min_total_amount: Decimal | None,
    max_total_amount: Decimal | None,
) -> list[str]:
    """Check that an amount band is non-negative and not inverted."""
    problems: list[str] = []
    if min_total_amount is not None and min_total_amount < 0:
        problems.append("min_total_amount must not be negative")
    if (
        min_total_amount is not None
        and max_total_amount is not None
        and min_total_amount > max_total_amount
    ):
        problems.append("min_total_amount exceeds max_total_amount")
    return problems
