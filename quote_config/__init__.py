"""
Approval route configuration (``quote_config``).

Routes are authored as YAML, parsed into frozen dataclasses, validated, and
installed into the approval_routes tables.  ``load_approval_routes`` is the
single entry point for reading a route file.
"""

from __future__ import annotations

import logging
from pathlib import Path

from quote_config.installer import install_routes
from quote_config.loader import load_yaml_file, parse_route_set
from quote_config.schema import ApprovalRouteDef, ApprovalRouteSet, ApprovalRouteStepDef
from quote_config.validator import ConfigValidationResult, validate_route_set

_logger = logging.getLogger("quote_kernel.config")

DEFAULT_ROUTES_PATH = Path(__file__).parent / "sets" / "default_routes.yaml"

__all__ = [
    "DEFAULT_ROUTES_PATH",
    "ApprovalRouteDef",
    "ApprovalRouteSet",
    "ApprovalRouteStepDef",
    "ConfigValidationResult",
    "install_routes",
    "load_approval_routes",
    "validate_route_set",
]


def load_approval_routes(path: Path | str | None = None) -> ApprovalRouteSet:
    """Load, parse and validate a route file.

    Args:
        path: YAML file to read.  Defaults to the bundled default routes.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the routes fail validation.
    """
    source = Path(path) if path is not None else DEFAULT_ROUTES_PATH
    route_set = parse_route_set(load_yaml_file(source))

    result = validate_route_set(route_set)
    if not result.is_valid:
        raise ValueError(
            f"Approval route configuration {source} is invalid:\n  "
            + "\n  ".join(result.errors)
        )

    _logger.info(
        "approval_routes_loaded",
        extra={
            "path": str(source),
            "route_count": len(route_set.routes),
            "checksum": route_set.checksum,
            "warnings": len(result.warnings),
        },
    )
    return route_set
