"""
Workflow services over the quote kernel.

``ApprovalWorkflow`` and ``ProcurementWorkflow`` are the in-process
interface for request handlers: every method runs in its own transaction
and returns an ``ActionResult`` instead of raising.
"""

from quote_services.documents import PurchaseOrderDocumentAdapter, QuoteDocumentAdapter
from quote_services.messages import message_for
from quote_services.roles import RoleProvider, StaticRoleProvider, UserRoleProvider
from quote_services.workflow import (
    ActionResult,
    ActionStatus,
    ApprovalWorkflow,
    ProcurementWorkflow,
)

__all__ = [
    "ActionResult",
    "ActionStatus",
    "ApprovalWorkflow",
    "ProcurementWorkflow",
    "PurchaseOrderDocumentAdapter",
    "QuoteDocumentAdapter",
    "RoleProvider",
    "StaticRoleProvider",
    "UserRoleProvider",
    "message_for",
]
