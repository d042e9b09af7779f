"""
Typed Exception Hierarchy for the Quote Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The presentation layer renders a specific, localized message for every kind
of failure.  Parsing exception messages for that purpose is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.approve(document_id, caller)
    except Exception as e:
        if "role" in str(e):  # FRAGILE - message might change
            show_forbidden()

Example - RIGHT way (what this module enables):
    try:
        service.approve(document_id, caller)
    except ApproverRoleMismatchError as e:  # Typed catch
        show_forbidden(required=e.required_role)  # Structured data

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from QuoteKernelError.  The five category bases are
the failure kinds the workflow facade reports back to callers:

    QuoteKernelError (base)
    |
    +-- UnauthorizedError
    |   +-- NotDocumentOwnerError
    |   +-- ApproverRoleMismatchError
    |
    +-- InvalidStateError
    |   +-- ActiveApprovalExistsError
    |   +-- ApprovalNotPendingError
    |   +-- ApprovalNotCancellableError
    |   +-- PendingStepMissingError
    |   +-- StaleApprovalStateError
    |   +-- InvalidDocumentStateError
    |   +-- InvalidStatusValueError
    |   +-- OrderNotApprovedError
    |   +-- ItemNotOrderedError
    |   +-- InvalidReceiptQuantityError
    |
    +-- ConfigurationError
    |   +-- NoMatchingRouteError
    |   +-- EmptyRouteError
    |   +-- InvalidRouteDefinitionError
    |
    +-- NotFoundError
    |   +-- DocumentNotFoundError
    |   +-- RouteNotFoundError
    |   +-- UserNotFoundError
    |   +-- QuoteItemNotFoundError
    |
    +-- PersistenceError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Unauthorized    | NOT_DOCUMENT_OWNER          | Caller neither creator nor back-office
                | APPROVER_ROLE_MISMATCH      | Caller role != pending step's role
----------------|-----------------------------|-----------------------------------------
InvalidState    | ACTIVE_APPROVAL_EXISTS      | Document already has a pending instance
                | APPROVAL_NOT_PENDING        | Latest instance missing or not pending
                | APPROVAL_NOT_CANCELLABLE    | Latest instance approved/cancelled
                | PENDING_STEP_MISSING        | Pending instance without pending step
                | STALE_APPROVAL_STATE        | Conditional update lost a race
                | INVALID_DOCUMENT_STATE      | Mirror status forbids the operation
                | INVALID_STATUS_VALUE        | Unknown status string supplied
                | ORDER_NOT_APPROVED          | Ordering an unapproved purchase order
                | ITEM_NOT_ORDERED            | Receiving an item that is not ordered
                | INVALID_RECEIPT_QUANTITY    | Receipt quantity <= 0 or too large
----------------|-----------------------------|-----------------------------------------
Configuration   | NO_MATCHING_ROUTE           | No active route matches the document
                | EMPTY_ROUTE                 | Matched route has zero steps
                | INVALID_ROUTE_DEFINITION    | Step orders/roles malformed
----------------|-----------------------------|-----------------------------------------
NotFound        | DOCUMENT_NOT_FOUND          | Quote / purchase order absent
                | ROUTE_NOT_FOUND             | Route ID doesn't exist
                | USER_NOT_FOUND              | Caller unknown or inactive
                | QUOTE_ITEM_NOT_FOUND        | Quote line item absent
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_ERROR           | Store operation failed
                | IMMUTABILITY_VIOLATION      | Update/delete of an append-only row

===============================================================================
HANDLING PATTERNS
===============================================================================

Kernel services raise.  ``quote_services.workflow`` is the only layer that
catches, converting each category into an ``ActionResult`` value.  Only
``PersistenceError`` is logged at ERROR level there; every other category
is a business-rule refusal.
"""


class QuoteKernelError(Exception):
    """
    Base exception for all quote kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "QUOTE_KERNEL_ERROR"


# Authorization exceptions


class UnauthorizedError(QuoteKernelError):
    """Caller lacks the required role or ownership."""

    code: str = "UNAUTHORIZED"


class NotDocumentOwnerError(UnauthorizedError):
    """Caller is neither the document's creator nor a back-office user."""

    code: str = "NOT_DOCUMENT_OWNER"

    def __init__(self, document_type: str, document_id: str, caller_id: str):
        self.document_type = document_type
        self.document_id = document_id
        self.caller_id = caller_id
        super().__init__(
            f"User {caller_id} may not manage approval of "
            f"{document_type} {document_id}"
        )


class ApproverRoleMismatchError(UnauthorizedError):
    """Caller's role does not match the approver role of the pending step."""

    code: str = "APPROVER_ROLE_MISMATCH"

    def __init__(
        self,
        instance_id: str,
        step_order: int,
        required_role: str,
        caller_role: str,
    ):
        self.instance_id = instance_id
        self.step_order = step_order
        self.required_role = required_role
        self.caller_role = caller_role
        super().__init__(
            f"Step {step_order} of approval {instance_id} requires role "
            f"{required_role}, caller has {caller_role}"
        )


# State exceptions


class InvalidStateError(QuoteKernelError):
    """Operation is not legal in the current instance or document state."""

    code: str = "INVALID_STATE"


class ActiveApprovalExistsError(InvalidStateError):
    """The document already has a pending approval instance."""

    code: str = "ACTIVE_APPROVAL_EXISTS"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        instance_id: str | None = None,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.instance_id = instance_id
        super().__init__(
            f"{document_type} {document_id} already has an approval in progress"
        )


class ApprovalNotPendingError(InvalidStateError):
    """The document's latest approval instance is missing or not pending."""

    code: str = "APPROVAL_NOT_PENDING"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        status: str | None,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"{document_type} {document_id} has no pending approval "
            f"(latest status: {status or 'none'})"
        )


class ApprovalNotCancellableError(InvalidStateError):
    """The latest approval instance cannot be returned to draft."""

    code: str = "APPROVAL_NOT_CANCELLABLE"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        status: str | None,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"Approval of {document_type} {document_id} cannot be cancelled "
            f"(latest status: {status or 'none'})"
        )


class PendingStepMissingError(InvalidStateError):
    """
    A pending instance has no pending step at its current_step.

    This is a detectable inconsistency in persisted state and is never
    treated as a no-op.
    """

    code: str = "PENDING_STEP_MISSING"

    def __init__(self, instance_id: str, current_step: int | None):
        self.instance_id = instance_id
        self.current_step = current_step
        super().__init__(
            f"Approval {instance_id} is pending but has no pending step "
            f"at position {current_step}"
        )


class StaleApprovalStateError(InvalidStateError):
    """
    A conditional update matched no row.

    Raised when another transaction changed the step or instance between
    the read and the write (the losing side of a race).  Never retried.
    """

    code: str = "STALE_APPROVAL_STATE"

    def __init__(self, entity_type: str, entity_id: str, expected: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected = expected
        super().__init__(
            f"{entity_type} {entity_id} is no longer in state {expected}: "
            "modified by another transaction"
        )


class InvalidDocumentStateError(InvalidStateError):
    """The document's approval mirror does not permit the operation."""

    code: str = "INVALID_DOCUMENT_STATE"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        approval_status: str,
        allowed: tuple[str, ...],
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.approval_status = approval_status
        self.allowed = allowed
        super().__init__(
            f"{document_type} {document_id} has approval status "
            f"{approval_status}; expected one of {', '.join(allowed)}"
        )


class InvalidStatusValueError(InvalidStateError):
    """An unknown status string was supplied."""

    code: str = "INVALID_STATUS_VALUE"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r}")


class OrderNotApprovedError(InvalidStateError):
    """A purchase order may only be placed once approved."""

    code: str = "ORDER_NOT_APPROVED"

    def __init__(self, order_id: str, approval_status: str):
        self.order_id = order_id
        self.approval_status = approval_status
        super().__init__(
            f"Purchase order {order_id} cannot be ordered with approval "
            f"status {approval_status}"
        )


class ItemNotOrderedError(InvalidStateError):
    """Quote item is not in the procurement state the action requires."""

    code: str = "ITEM_NOT_ORDERED"

    def __init__(self, quote_item_id: str, procurement_status: str, required: str):
        self.quote_item_id = quote_item_id
        self.procurement_status = procurement_status
        self.required = required
        super().__init__(
            f"Quote item {quote_item_id} is {procurement_status}; "
            f"action requires {required}"
        )


class InvalidReceiptQuantityError(InvalidStateError):
    """Received quantity is not positive or exceeds what is outstanding."""

    code: str = "INVALID_RECEIPT_QUANTITY"

    def __init__(self, quote_item_id: str, quantity: str, remaining: str):
        self.quote_item_id = quote_item_id
        self.quantity = quantity
        self.remaining = remaining
        super().__init__(
            f"Cannot receive {quantity} of quote item {quote_item_id}: "
            f"{remaining} outstanding"
        )


# Configuration exceptions


class ConfigurationError(QuoteKernelError):
    """No usable approval route is configured."""

    code: str = "CONFIGURATION_ERROR"


class NoMatchingRouteError(ConfigurationError):
    """No active route matches the document type, role and amount."""

    code: str = "NO_MATCHING_ROUTE"

    def __init__(
        self,
        document_type: str,
        requester_role: str,
        total_amount: str | None,
    ):
        self.document_type = document_type
        self.requester_role = requester_role
        self.total_amount = total_amount
        super().__init__(
            f"No approval route for {document_type} requested by "
            f"{requester_role} (amount {total_amount})"
        )


class EmptyRouteError(ConfigurationError):
    """The selected route has no steps and cannot start an approval."""

    code: str = "EMPTY_ROUTE"

    def __init__(self, route_id: str, route_name: str):
        self.route_id = route_id
        self.route_name = route_name
        super().__init__(f"Approval route {route_name!r} has no steps")


class InvalidRouteDefinitionError(ConfigurationError):
    """Route definition violates step-order or role rules."""

    code: str = "INVALID_ROUTE_DEFINITION"

    def __init__(self, route_name: str, problems: list[str]):
        self.route_name = route_name
        self.problems = problems
        super().__init__(
            f"Invalid approval route {route_name!r}: {'; '.join(problems)}"
        )


# Lookup exceptions


class NotFoundError(QuoteKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """Quote or purchase order not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} not found: {document_id}")


class RouteNotFoundError(NotFoundError):
    """Approval route not found."""

    code: str = "ROUTE_NOT_FOUND"

    def __init__(self, route_id: str):
        self.route_id = route_id
        super().__init__(f"Approval route not found: {route_id}")


class UserNotFoundError(NotFoundError):
    """Caller is unknown or deactivated."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Active user not found: {user_id}")


class QuoteItemNotFoundError(NotFoundError):
    """Quote line item not found."""

    code: str = "QUOTE_ITEM_NOT_FOUND"

    def __init__(self, quote_item_id: str):
        self.quote_item_id = quote_item_id
        super().__init__(f"Quote item not found: {quote_item_id}")


# Persistence exceptions


class PersistenceError(QuoteKernelError):
    """The underlying store rejected or aborted an operation."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class ImmutabilityViolationError(PersistenceError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        self.operation = f"write {entity_type}"
        self.detail = reason
        QuoteKernelError.__init__(
            self,
            f"Immutability violation on {entity_type} {entity_id}: {reason}",
        )
