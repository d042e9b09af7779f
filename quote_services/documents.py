"""
Document adapters (``quote_services.documents``).

Concrete ``DocumentAdapter`` implementations that plug quotes and purchase
orders into the generic approval state machine.

* Quotes have no approval side effects beyond the mirror.
* Purchase orders go back to 未発注 and reconcile their quote items on
  every approval transition, and can optionally be placed (set to 発注済)
  automatically the moment the final approval lands.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from quote_kernel.domain.approval import Caller, DocumentType
from quote_kernel.domain.procurement import PurchaseOrderStatus
from quote_kernel.logging_config import get_logger
from quote_kernel.models.documents import PurchaseOrderModel, QuoteModel
from quote_kernel.services.documents import MirroredDocumentAdapter
from quote_kernel.services.procurement_service import ProcurementService

logger = get_logger("services.document_adapters")


class QuoteDocumentAdapter(MirroredDocumentAdapter):
    """Approval capabilities of quotes."""

    model = QuoteModel
    document_type = DocumentType.QUOTE
    total_attribute = "total_amount"


class PurchaseOrderDocumentAdapter(MirroredDocumentAdapter):
    """Approval capabilities of purchase orders."""

    model = PurchaseOrderModel
    document_type = DocumentType.PURCHASE_ORDER
    total_attribute = "total_cost"

    def __init__(
        self,
        session: Session,
        procurement: ProcurementService,
        order_on_approval: bool = False,
    ):
        super().__init__(session)
        self.procurement = procurement
        self.order_on_approval = order_on_approval

    def on_requested(self, document_id: UUID, caller: Caller) -> None:
        self.procurement.reset_order_status(document_id, caller)

    def on_approved(self, document_id: UUID, caller: Caller) -> None:
        self.procurement.reset_order_status(document_id, caller)
        if self.order_on_approval:
            order = self.procurement.get_order(document_id)
            logger.info(
                "purchase_order_auto_ordered",
                extra={"order_id": str(document_id)},
            )
            self.procurement.set_purchase_order_status(
                document_id,
                PurchaseOrderStatus.ORDERED,
                caller,
                order_date=order.order_date,
            )

    def on_rejected(self, document_id: UUID, caller: Caller) -> None:
        self.procurement.reset_order_status(document_id, caller)

    def on_cancelled(self, document_id: UUID, caller: Caller) -> None:
        self.procurement.reset_order_status(document_id, caller)
