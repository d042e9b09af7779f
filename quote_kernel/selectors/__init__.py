"""Read-only query selectors."""

from quote_kernel.selectors.approval_selector import ApprovalSelector, MirrorViolation
from quote_kernel.selectors.base import BaseSelector
from quote_kernel.selectors.procurement_selector import ProcurementSelector

__all__ = [
    "ApprovalSelector",
    "BaseSelector",
    "MirrorViolation",
    "ProcurementSelector",
]
