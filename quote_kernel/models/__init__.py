"""ORM models.  Importing this package registers every table on Base.metadata."""

from quote_kernel.models.approval import (
    ApprovalInstanceModel,
    ApprovalInstanceStepModel,
    ApprovalRouteModel,
    ApprovalRouteStepModel,
)
from quote_kernel.models.documents import (
    PurchaseOrderItemModel,
    PurchaseOrderModel,
    QuoteItemModel,
    QuoteModel,
)
from quote_kernel.models.procurement_log import ProcurementLogModel
from quote_kernel.models.users import UserModel

__all__ = [
    "ApprovalInstanceModel",
    "ApprovalInstanceStepModel",
    "ApprovalRouteModel",
    "ApprovalRouteStepModel",
    "ProcurementLogModel",
    "PurchaseOrderItemModel",
    "PurchaseOrderModel",
    "QuoteItemModel",
    "QuoteModel",
    "UserModel",
]
