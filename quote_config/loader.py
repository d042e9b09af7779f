"""
Configuration Loader (``quote_config.loader``).

Responsibility
--------------
Loads approval route YAML files and parses them into the frozen
dataclasses in ``quote_config.schema``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from quote_config.schema import ApprovalRouteDef, ApprovalRouteSet, ApprovalRouteStepDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _optional_amount(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, float):
        # Keep the authored digits, not the binary float.
        return str(Decimal(repr(value)))
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_route_step(data: dict[str, Any]) -> ApprovalRouteStepDef:
    """Parse an ApprovalRouteStepDef from a dict."""
    return ApprovalRouteStepDef(
        step_order=int(data["step_order"]),
        approver_role=str(data["approver_role"]),
        notes=_optional_text(data.get("notes")),
    )


def parse_route(data: dict[str, Any]) -> ApprovalRouteDef:
    """Parse an ApprovalRouteDef from a dict."""
    return ApprovalRouteDef(
        name=str(data["name"]),
        target_type=str(data["target_type"]),
        steps=tuple(parse_route_step(s) for s in data.get("steps") or []),
        description=_optional_text(data.get("description")),
        requester_role=_optional_text(data.get("requester_role")),
        min_total_amount=_optional_amount(data.get("min_total_amount")),
        max_total_amount=_optional_amount(data.get("max_total_amount")),
    )


def parse_route_set(data: dict[str, Any]) -> ApprovalRouteSet:
    """Parse a whole route file."""
    return ApprovalRouteSet(
        version=int(data.get("version", 1)),
        routes=tuple(parse_route(r) for r in data.get("routes") or []),
        description=_optional_text(data.get("description")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
