"""
quote_services.workflow -- Result-returning workflow facade.

Responsibility:
    The interface the request handlers call.  Each public method is one
    unit of work: it opens a session, resolves the caller, runs exactly one
    kernel operation, commits on success and rolls back on any failure.

Architecture position:
    Services -- imperative shell over the kernel.  Owns the transaction
    boundary; kernel services below it only flush.

Invariants enforced:
    - One transaction per operation: a multi-row effect (step, instance,
      mirror, quote items, log rows) either commits as a whole or not at
      all.
    - Kernel errors never escape: every QuoteKernelError and every
      SQLAlchemy error becomes an ``ActionResult`` carrying a category,
      the error code and a user-facing message.
    - Only persistence failures are logged at ERROR; business-rule
      refusals are logged at INFO.
    - No retries.  A lost race is reported as INVALID_STATE so the user
      can refresh and decide.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Generic, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quote_kernel.domain.approval import ApprovalInstance, Caller, DocumentType
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.domain.procurement import (
    PurchaseOrder,
    PurchaseOrderStatus,
    QuoteItem,
    ReversionPolicy,
)
from quote_kernel.exceptions import (
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    QuoteKernelError,
    UnauthorizedError,
)
from quote_kernel.logging_config import LogContext, get_logger
from quote_kernel.services.approval_service import ApprovalService
from quote_kernel.services.documents import DocumentAdapter
from quote_kernel.services.procurement_service import ProcurementService
from quote_services.documents import PurchaseOrderDocumentAdapter, QuoteDocumentAdapter
from quote_services.messages import message_for
from quote_services.roles import RoleProvider, UserRoleProvider

logger = get_logger("services.workflow")

T = TypeVar("T")


class ActionStatus(str, Enum):
    """Outcome category of a workflow action."""

    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    CONFIGURATION_ERROR = "configuration_error"
    NOT_FOUND = "not_found"
    PERSISTENCE_ERROR = "persistence_error"


_STATUS_BY_CATEGORY: tuple[tuple[type[QuoteKernelError], ActionStatus], ...] = (
    (UnauthorizedError, ActionStatus.UNAUTHORIZED),
    (InvalidStateError, ActionStatus.INVALID_STATE),
    (ConfigurationError, ActionStatus.CONFIGURATION_ERROR),
    (NotFoundError, ActionStatus.NOT_FOUND),
    (PersistenceError, ActionStatus.PERSISTENCE_ERROR),
)


def status_for(error: QuoteKernelError) -> ActionStatus:
    for category, status in _STATUS_BY_CATEGORY:
        if isinstance(error, category):
            return status
    return ActionStatus.PERSISTENCE_ERROR


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Result of a workflow action."""

    status: ActionStatus
    value: T | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == ActionStatus.SUCCESS

    @classmethod
    def ok(cls, value: T | None = None) -> ActionResult[T]:
        return cls(status=ActionStatus.SUCCESS, value=value)

    @classmethod
    def from_error(cls, error: QuoteKernelError) -> ActionResult[T]:
        return cls(
            status=status_for(error),
            error_code=error.code,
            message=message_for(error),
        )


class _TransactionalWorkflow:
    """Runs one kernel operation per transaction and folds errors into results."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        role_provider: RoleProvider | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._roles = role_provider or UserRoleProvider()
        self._clock = clock or SystemClock()

    def _run(
        self,
        operation: str,
        caller_id: UUID,
        work: Callable[[Session, Caller], T],
        *,
        document_type: DocumentType | None = None,
        document_id: UUID | None = None,
    ) -> ActionResult[T]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(caller_id),
            operation=operation,
            document_type=document_type.value if document_type else None,
            document_id=str(document_id) if document_id else None,
        ):
            t0 = time.monotonic()
            session = self._session_factory()
            try:
                caller = self._roles.resolve(session, caller_id)
                value = work(session, caller)
                session.commit()
            except QuoteKernelError as exc:
                session.rollback()
                return self._refused(exc, t0)
            except SQLAlchemyError as exc:
                session.rollback()
                error = PersistenceError(operation, f"{type(exc).__name__}: {exc}")
                error.__cause__ = exc
                return self._refused(error, t0)
            except Exception:
                session.rollback()
                logger.error(
                    "workflow_action_crashed",
                    extra={"duration_ms": _elapsed_ms(t0)},
                    exc_info=True,
                )
                raise
            finally:
                session.close()

            logger.info(
                "workflow_action_completed",
                extra={"duration_ms": _elapsed_ms(t0)},
            )
            return ActionResult.ok(value)

    def _refused(self, error: QuoteKernelError, t0: float) -> ActionResult:
        result: ActionResult = ActionResult.from_error(error)
        if isinstance(error, PersistenceError):
            logger.error(
                "workflow_action_failed",
                extra={
                    "error_code": error.code,
                    "duration_ms": _elapsed_ms(t0),
                },
                exc_info=error,
            )
        else:
            logger.info(
                "workflow_action_refused",
                extra={
                    "error_code": error.code,
                    "result_status": result.status.value,
                    "duration_ms": _elapsed_ms(t0),
                },
            )
        return result


def _elapsed_ms(t0: float) -> float:
    return round((time.monotonic() - t0) * 1000, 2)


AdapterFactory = Callable[[Session, Clock], DocumentAdapter]


class ApprovalWorkflow(_TransactionalWorkflow):
    """Approval actions for one document type.

    Build with ``for_quotes`` or ``for_purchase_orders``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        adapter_factory: AdapterFactory,
        document_type: DocumentType,
        role_provider: RoleProvider | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session_factory, role_provider, clock)
        self._adapter_factory = adapter_factory
        self.document_type = document_type

    @classmethod
    def for_quotes(
        cls,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        role_provider: RoleProvider | None = None,
        clock: Clock | None = None,
    ) -> ApprovalWorkflow:
        return cls(
            session_factory,
            lambda session, clock: QuoteDocumentAdapter(session),
            DocumentType.QUOTE,
            role_provider,
            clock,
        )

    @classmethod
    def for_purchase_orders(
        cls,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        role_provider: RoleProvider | None = None,
        clock: Clock | None = None,
        reversion_policy: ReversionPolicy = ReversionPolicy.RECOMPUTE,
        order_on_approval: bool = False,
    ) -> ApprovalWorkflow:
        def adapter_factory(session: Session, clock: Clock) -> DocumentAdapter:
            return PurchaseOrderDocumentAdapter(
                session,
                ProcurementService(session, clock, reversion_policy),
                order_on_approval=order_on_approval,
            )

        return cls(
            session_factory,
            adapter_factory,
            DocumentType.PURCHASE_ORDER,
            role_provider,
            clock,
        )

    def _service(self, session: Session) -> ApprovalService:
        return ApprovalService(
            session,
            self._adapter_factory(session, self._clock),
            self._clock,
        )

    def request_approval(
        self, document_id: UUID, caller_id: UUID,
    ) -> ActionResult[ApprovalInstance]:
        return self._run(
            "request_approval",
            caller_id,
            lambda session, caller: self._service(session).request_approval(
                document_id, caller,
            ),
            document_type=self.document_type,
            document_id=document_id,
        )

    def approve(
        self, document_id: UUID, caller_id: UUID,
    ) -> ActionResult[ApprovalInstance]:
        return self._run(
            "approve",
            caller_id,
            lambda session, caller: self._service(session).approve(document_id, caller),
            document_type=self.document_type,
            document_id=document_id,
        )

    def reject(
        self,
        document_id: UUID,
        caller_id: UUID,
        reason: str | None = None,
    ) -> ActionResult[ApprovalInstance]:
        return self._run(
            "reject",
            caller_id,
            lambda session, caller: self._service(session).reject(
                document_id, caller, reason,
            ),
            document_type=self.document_type,
            document_id=document_id,
        )

    def cancel_approval(
        self, document_id: UUID, caller_id: UUID,
    ) -> ActionResult[None]:
        return self._run(
            "cancel_approval",
            caller_id,
            lambda session, caller: self._service(session).cancel_approval(
                document_id, caller,
            ),
            document_type=self.document_type,
            document_id=document_id,
        )


class ProcurementWorkflow(_TransactionalWorkflow):
    """Purchase order status changes and item receiving."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        role_provider: RoleProvider | None = None,
        clock: Clock | None = None,
        reversion_policy: ReversionPolicy = ReversionPolicy.RECOMPUTE,
    ) -> None:
        super().__init__(session_factory, role_provider, clock)
        self.reversion_policy = reversion_policy

    def _service(self, session: Session) -> ProcurementService:
        return ProcurementService(session, self._clock, self.reversion_policy)

    def set_purchase_order_status(
        self,
        order_id: UUID,
        new_status: PurchaseOrderStatus | str,
        caller_id: UUID,
        order_date: date | datetime | str | None = None,
        notes: str | None = None,
    ) -> ActionResult[PurchaseOrder]:
        return self._run(
            "set_purchase_order_status",
            caller_id,
            lambda session, caller: self._service(session).set_purchase_order_status(
                order_id, new_status, caller, order_date=order_date, notes=notes,
            ),
            document_type=DocumentType.PURCHASE_ORDER,
            document_id=order_id,
        )

    def record_receipt(
        self,
        quote_item_id: UUID,
        quantity: Decimal | int | str,
        caller_id: UUID,
        received_date: date | datetime | str | None = None,
        notes: str | None = None,
    ) -> ActionResult[QuoteItem]:
        return self._run(
            "record_receipt",
            caller_id,
            lambda session, caller: self._service(session).record_receipt(
                quote_item_id, quantity, caller,
                received_date=received_date, notes=notes,
            ),
        )

    def record_shipment_ready(
        self,
        quote_item_id: UUID,
        caller_id: UUID,
        action_date: date | datetime | str | None = None,
        notes: str | None = None,
    ) -> ActionResult[QuoteItem]:
        return self._run(
            "record_shipment_ready",
            caller_id,
            lambda session, caller: self._service(session).record_shipment_ready(
                quote_item_id, caller, action_date=action_date, notes=notes,
            ),
        )
