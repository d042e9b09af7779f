"""
Module: quote_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by the
    kernel services and the configuration validator.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import quote_kernel/domain/ types.
"""

from quote_engines.route_matching import (
    route_matches,
    select_matching_route,
    validate_amount_band,
    validate_step_orders,
)

__all__ = [
    "route_matches",
    "select_matching_route",
    "validate_amount_band",
    "validate_step_orders",
]
