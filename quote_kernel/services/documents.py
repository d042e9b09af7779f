"""
quote_kernel.services.documents -- Capability interface over approvable documents.

Responsibility:
    Lets one approval state machine drive both quotes and purchase orders.
    ``DocumentAdapter`` is the small protocol the state machine needs;
    ``MirroredDocumentAdapter`` implements the parts that are identical for
    every document table (loading a snapshot, conditionally moving the
    ``approval_status`` mirror).  Document-specific side effects live in
    the concrete adapters in ``quote_services.documents``.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - The mirror is only ever changed by a conditional UPDATE that re-checks
      the expected current mirror value; a miss raises
      ``StaleApprovalStateError`` so partial application is impossible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Iterable, Protocol
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from quote_kernel.domain.approval import (
    Caller,
    DocumentApprovalStatus,
    DocumentType,
)
from quote_kernel.exceptions import DocumentNotFoundError, StaleApprovalStateError
from quote_kernel.logging_config import get_logger

logger = get_logger("services.documents")


@dataclass(frozen=True)
class DocumentSnapshot:
    """What the approval state machine needs to know about a document."""

    document_type: DocumentType
    document_id: UUID
    created_by: UUID
    approval_status: DocumentApprovalStatus
    total_amount: Decimal | None


class DocumentAdapter(Protocol):
    """Capabilities the approval state machine requires of a document type."""

    document_type: DocumentType

    def load(self, document_id: UUID) -> DocumentSnapshot:
        """Return a snapshot or raise DocumentNotFoundError."""
        ...

    def set_approval_status(
        self,
        document_id: UUID,
        status: DocumentApprovalStatus,
        *,
        expected: Iterable[DocumentApprovalStatus],
        actor_id: UUID,
        decided_at: datetime | None = None,
    ) -> None:
        """Move the mirror, only if it currently holds one of ``expected``."""
        ...

    def on_requested(self, document_id: UUID, caller: Caller) -> None:
        ...

    def on_approved(self, document_id: UUID, caller: Caller) -> None:
        ...

    def on_rejected(self, document_id: UUID, caller: Caller) -> None:
        ...

    def on_cancelled(self, document_id: UUID, caller: Caller) -> None:
        ...


class MirroredDocumentAdapter:
    """Shared mirror handling for document tables.

    Subclasses set ``model`` (a TrackedBase model with ``approval_status``,
    ``approved_by`` and ``approved_at`` columns), ``document_type`` and
    ``total_attribute``, and override the ``on_*`` hooks as needed.
    """

    model: ClassVar[type]
    document_type: ClassVar[DocumentType]
    total_attribute: ClassVar[str]

    def __init__(self, session: Session):
        self.session = session

    def _get_model(self, document_id: UUID):
        model = self.session.get(self.model, document_id)
        if model is None:
            raise DocumentNotFoundError(self.document_type.value, str(document_id))
        return model

    def load(self, document_id: UUID) -> DocumentSnapshot:
        model = self._get_model(document_id)
        return DocumentSnapshot(
            document_type=self.document_type,
            document_id=model.id,
            created_by=model.created_by_id,
            approval_status=DocumentApprovalStatus(model.approval_status),
            total_amount=getattr(model, self.total_attribute),
        )

    def set_approval_status(
        self,
        document_id: UUID,
        status: DocumentApprovalStatus,
        *,
        expected: Iterable[DocumentApprovalStatus],
        actor_id: UUID,
        decided_at: datetime | None = None,
    ) -> None:
        expected_values = [s.value for s in expected]
        values: dict = {
            "approval_status": status.value,
            "updated_by_id": actor_id,
        }
        if status == DocumentApprovalStatus.APPROVED:
            values["approved_by"] = actor_id
            values["approved_at"] = decided_at
        elif status in (DocumentApprovalStatus.DRAFT, DocumentApprovalStatus.PENDING):
            values["approved_by"] = None
            values["approved_at"] = None

        result = self.session.execute(
            update(self.model)
            .where(
                self.model.id == document_id,
                self.model.approval_status.in_(expected_values),
            )
            .values(**values)
        )
        if result.rowcount != 1:
            raise StaleApprovalStateError(
                self.document_type.value,
                str(document_id),
                "/".join(expected_values),
            )
        # A copy already loaded in this session reloads on next access.
        loaded = self.session.identity_map.get(
            self.session.identity_key(self.model, document_id)
        )
        if loaded is not None:
            self.session.expire(loaded)

        logger.debug(
            "approval_status_mirrored",
            extra={
                "document_type": self.document_type.value,
                "document_id": str(document_id),
                "approval_status": status.value,
            },
        )

    def on_requested(self, document_id: UUID, caller: Caller) -> None:
        return None

    def on_approved(self, document_id: UUID, caller: Caller) -> None:
        return None

    def on_rejected(self, document_id: UUID, caller: Caller) -> None:
        return None

    def on_cancelled(self, document_id: UUID, caller: Caller) -> None:
        return None
