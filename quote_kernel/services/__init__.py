"""Services for the quote kernel (write side)."""

from quote_kernel.services.approval_route_service import ApprovalRouteService
from quote_kernel.services.approval_service import ApprovalService
from quote_kernel.services.documents import (
    DocumentAdapter,
    DocumentSnapshot,
    MirroredDocumentAdapter,
)
from quote_kernel.services.procurement_service import (
    ProcurementService,
    parse_purchase_order_status,
)

__all__ = [
    "ApprovalRouteService",
    "ApprovalService",
    "DocumentAdapter",
    "DocumentSnapshot",
    "MirroredDocumentAdapter",
    "ProcurementService",
    "parse_purchase_order_status",
]
