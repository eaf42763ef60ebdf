"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (API handlers, batch jobs, the dashboard) must react to payment
errors precisely.  Matching on message strings is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.complete(request_id, payment_date, actor_id)
    except InvalidStateTransitionError as e:
        api_response(code=e.code, status=e.current_status)
    except SourceWriteError as e:
        # Request state was rolled back; nothing to repair.
        api_response(code=e.code, source=e.source_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidPaymentTypeError
    |   +-- MalformedDateError
    |   +-- SourceAmountMissingError
    |
    +-- NotFoundError
    |   +-- PaymentRequestNotFoundError
    |   +-- SourceRecordNotFoundError
    |
    +-- StateConflictError
    |   +-- DuplicateActiveRequestError
    |   +-- InvalidStateTransitionError
    |   +-- SourceAlreadyPaidError
    |
    +-- SourceWriteError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_AMOUNT              | Requested amount <= 0
                | INVALID_PAYMENT_TYPE        | Payment type not valid for source type
                | MALFORMED_DATE              | Date missing, unparseable or has a time part
                | SOURCE_AMOUNT_MISSING       | Targeted source amount is unset or <= 0
----------------|-----------------------------|-----------------------------------------
Not found       | PAYMENT_REQUEST_NOT_FOUND   | Unknown payment request id
                | SOURCE_RECORD_NOT_FOUND     | Unknown purchase order / packing list id
----------------|-----------------------------|-----------------------------------------
State conflict  | DUPLICATE_ACTIVE_REQUEST    | A Requested request already exists for the key
                | INVALID_STATE_TRANSITION    | Complete non-Requested, revert non-Completed,
                |                             | delete or edit a Completed request
                | SOURCE_ALREADY_PAID         | Source amount already carries a payment date
----------------|-----------------------------|-----------------------------------------
Write-through   | SOURCE_WRITE_FAILED         | Source field update failed; request rolled back
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Request changed under a concurrent writer

Validation and not-found errors are raised before any write.  State
conflicts, write-through failures and lock conflicts leave storage exactly
as it was before the call.
"""


class SettlementError(Exception):
    """
    Base exception for all settlement errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_ERROR"


# Validation


class ValidationError(SettlementError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Requested amount is not strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Payment amount must be positive, got {amount}")


class InvalidPaymentTypeError(ValidationError):
    """Payment type does not apply to the source type."""

    code: str = "INVALID_PAYMENT_TYPE"

    def __init__(self, source_type: str, payment_type: str):
        self.source_type = source_type
        self.payment_type = payment_type
        super().__init__(
            f"Payment type '{payment_type}' is not valid for source type '{source_type}'"
        )


class MalformedDateError(ValidationError):
    """A calendar date was missing or could not be parsed."""

    code: str = "MALFORMED_DATE"

    def __init__(self, value: str, field_name: str = "date"):
        self.value = value
        self.field_name = field_name
        super().__init__(f"Malformed {field_name}: {value!r}")


class SourceAmountMissingError(ValidationError):
    """The source record has no positive amount for the payment type."""

    code: str = "SOURCE_AMOUNT_MISSING"

    def __init__(self, source_type: str, source_id: str, payment_type: str, amount: str):
        self.source_type = source_type
        self.source_id = source_id
        self.payment_type = payment_type
        self.amount = amount
        super().__init__(
            f"{source_type} {source_id} has no {payment_type} amount to pay (got {amount})"
        )


# Not found


class NotFoundError(SettlementError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class PaymentRequestNotFoundError(NotFoundError):
    """Payment request with given ID was not found."""

    code: str = "PAYMENT_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Payment request not found: {request_id}")


class SourceRecordNotFoundError(NotFoundError):
    """Purchase order or packing list with given ID was not found."""

    code: str = "SOURCE_RECORD_NOT_FOUND"

    def __init__(self, source_type: str, source_id: str):
        self.source_type = source_type
        self.source_id = source_id
        super().__init__(f"{source_type} not found: {source_id}")


# State conflicts


class StateConflictError(SettlementError):
    """Base exception for operations not allowed in the current state."""

    code: str = "STATE_CONFLICT"


class DuplicateActiveRequestError(StateConflictError):
    """A Requested payment request already exists for the same key."""

    code: str = "DUPLICATE_ACTIVE_REQUEST"

    def __init__(
        self,
        source_type: str,
        source_id: str,
        payment_type: str,
        existing_request_number: str,
    ):
        self.source_type = source_type
        self.source_id = source_id
        self.payment_type = payment_type
        self.existing_request_number = existing_request_number
        super().__init__(
            f"Active {payment_type} request {existing_request_number} already "
            f"exists for {source_type} {source_id}"
        )


class InvalidStateTransitionError(StateConflictError):
    """The request is not in the state the action requires."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, request_id: str, current_status: str, action: str):
        self.request_id = request_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} payment request {request_id} in status {current_status}"
        )


class SourceAlreadyPaidError(StateConflictError):
    """The source amount targeted by a new request is already paid."""

    code: str = "SOURCE_ALREADY_PAID"

    def __init__(self, source_type: str, source_id: str, payment_type: str, paid_on: str):
        self.source_type = source_type
        self.source_id = source_id
        self.payment_type = payment_type
        self.paid_on = paid_on
        super().__init__(
            f"{payment_type} on {source_type} {source_id} was already paid on {paid_on}"
        )


# Write-through


class SourceWriteError(SettlementError):
    """
    Write-through to the source record failed.

    The request state change that preceded the write has been rolled back,
    so request and source never diverge.
    """

    code: str = "SOURCE_WRITE_FAILED"

    def __init__(self, source_type: str, source_id: str, field_name: str, reason: str):
        self.source_type = source_type
        self.source_id = source_id
        self.field_name = field_name
        self.reason = reason
        super().__init__(
            f"Failed to write {field_name} on {source_type} {source_id}: {reason}"
        )


# Concurrency


class ConcurrencyError(SettlementError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
