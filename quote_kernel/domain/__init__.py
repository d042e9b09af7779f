"""
Pure domain layer.

Value objects, status enums and pure rules with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock.
"""

from quote_kernel.domain.approval import (
    BACK_OFFICE_ROLES,
    INSTANCE_TRANSITIONS,
    MIRROR_STATUS_FOR_INSTANCE,
    ApprovalInstance,
    ApprovalInstanceStatus,
    ApprovalInstanceStep,
    ApprovalRoute,
    ApprovalRouteStep,
    ApprovalStepStatus,
    Caller,
    DocumentApprovalStatus,
    DocumentType,
    UserRole,
    is_mirror_consistent,
    pending_step_violations,
)
from quote_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from quote_kernel.domain.dates import (
    NormalizedDate,
    format_utc_timestamp,
    normalize_order_date,
)
from quote_kernel.domain.procurement import (
    ProcurementAction,
    ProcurementLogEntry,
    ProcurementStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    QuoteItem,
    ReversionPolicy,
)

__all__ = [
    "BACK_OFFICE_ROLES",
    "INSTANCE_TRANSITIONS",
    "MIRROR_STATUS_FOR_INSTANCE",
    "ApprovalInstance",
    "ApprovalInstanceStatus",
    "ApprovalInstanceStep",
    "ApprovalRoute",
    "ApprovalRouteStep",
    "ApprovalStepStatus",
    "Caller",
    "Clock",
    "DeterministicClock",
    "DocumentApprovalStatus",
    "DocumentType",
    "NormalizedDate",
    "ProcurementAction",
    "ProcurementLogEntry",
    "ProcurementStatus",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    "QuoteItem",
    "ReversionPolicy",
    "SystemClock",
    "UserRole",
    "format_utc_timestamp",
    "is_mirror_consistent",
    "normalize_order_date",
    "pending_step_violations",
]
