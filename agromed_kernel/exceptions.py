"""
Typed Exception Hierarchy for the Agromed Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval decisions must fail precisely. A reviewer screen has to tell the
district officer *which* medicine is short and by *how much*; parsing that
out of a message string is fragile. Therefore:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        workflow.validate_and_approve(decision, approver_id)
    except Exception as e:
        if "exceeds available stock" in str(e):  # FRAGILE
            ...

Example - RIGHT way (what this module enables):
    try:
        workflow.validate_and_approve(decision, approver_id)
    except InsufficientStockError as e:
        render(e.medicine_name, e.approved_quantity, e.available_quantity)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from AgromedKernelError:

    AgromedKernelError (base)
    |
    +-- NotFoundError
    |   +-- SubmissionNotFoundError
    |
    +-- ValidationError
    |   +-- DecisionValidationError
    |   +-- UnknownSubmissionItemError
    |   +-- BatchTooLargeError
    |   +-- InvalidAreaError
    |   +-- InvalidOptionError
    |   +-- InvalidPriorityError
    |
    +-- InvalidStateError
    |   +-- SubmissionNotApprovableError
    |   +-- InvalidStatusTransitionError
    |
    +-- QuantityExceededError
    +-- InsufficientStockError
    +-- PermissionDeniedError
    |
    +-- ConflictError
    |   +-- StaleSubmissionStatusError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | SUBMISSION_NOT_FOUND        | Submission ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Validation      | DECISION_VALIDATION_ERROR   | Decision payload incomplete/malformed
                | UNKNOWN_SUBMISSION_ITEM     | Approved item not on this submission
                | BATCH_TOO_LARGE             | Bulk call above the batch cap
                | INVALID_AREA                | Non-positive affected area
                | INVALID_OPTION              | Recommendation option out of range
                | INVALID_PRIORITY            | Unknown priority level
----------------|-----------------------------|-----------------------------------------
State           | SUBMISSION_NOT_APPROVABLE   | Status not pending/under_review
                | INVALID_STATUS_TRANSITION   | Target status unreachable
----------------|-----------------------------|-----------------------------------------
Quantity        | QUANTITY_EXCEEDED           | Approved > requested
                | INSUFFICIENT_STOCK          | Approved > live available stock
----------------|-----------------------------|-----------------------------------------
Authorization   | PERMISSION_DENIED           | Actor lacks approval authority
----------------|-----------------------------|-----------------------------------------
Concurrency     | STALE_SUBMISSION_STATUS     | Conditional status update lost the race
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Engine configuration invalid

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS, FALL BACK TO THE CATEGORY:

    try:
        workflow.validate_and_approve(decision, approver_id)
    except StaleSubmissionStatusError:
        reload_and_show_current_status()
    except ValidationError as e:
        show_form_error(e.rule, str(e))

2. BULK OPERATIONS NEVER RAISE PER-ID ERRORS:

    results = workflow.bulk_approve(ids, "approve", approver_id)
    failed = [r for r in results if not r.success]   # r.error_code

===============================================================================
"""

from decimal import Decimal


class AgromedKernelError(Exception):
    """
    Base exception for all agromed kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "AGROMED_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(AgromedKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class SubmissionNotFoundError(NotFoundError):
    """Submission with given ID was not found."""

    code: str = "SUBMISSION_NOT_FOUND"

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission not found: {submission_id}")


# Validation exceptions


class ValidationError(AgromedKernelError):
    """
    Base exception for malformed or incomplete input.

    ``rule`` names the validation rule that failed so callers can map it
    to a form field without parsing the message.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, rule: str = "validation"):
        self.rule = rule
        super().__init__(message)


class DecisionValidationError(ValidationError):
    """Approval decision payload is incomplete for its action."""

    code: str = "DECISION_VALIDATION_ERROR"

    def __init__(self, action: str, rule: str, reason: str):
        self.action = action
        super().__init__(f"Invalid {action} decision: {reason}", rule=rule)


class UnknownSubmissionItemError(ValidationError):
    """Approved item does not belong to the submission."""

    code: str = "UNKNOWN_SUBMISSION_ITEM"

    def __init__(self, submission_id: str, submission_item_id: str):
        self.submission_id = submission_id
        self.submission_item_id = submission_item_id
        super().__init__(
            f"Submission item {submission_item_id} not found "
            f"on submission {submission_id}",
            rule="item_exists",
        )


class BatchTooLargeError(ValidationError):
    """Bulk operation exceeds the maximum batch size."""

    code: str = "BATCH_TOO_LARGE"

    def __init__(self, size: int, maximum: int):
        self.size = size
        self.maximum = maximum
        super().__init__(
            f"Maximum {maximum} submissions allowed in bulk operation, got {size}",
            rule="batch_size",
        )


class InvalidAreaError(ValidationError):
    """Affected area is not strictly positive."""

    code: str = "INVALID_AREA"

    def __init__(self, affected_area: Decimal):
        self.affected_area = str(affected_area)
        super().__init__(
            f"Affected area must be positive, got {affected_area}",
            rule="positive_area",
        )


class InvalidOptionError(ValidationError):
    """Recommendation option is out of its allowed range."""

    code: str = "INVALID_OPTION"

    def __init__(self, option: str, value: object, allowed: str):
        self.option = option
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid value {value!r} for {option}: expected {allowed}",
            rule=option,
        )


class InvalidPriorityError(ValidationError):
    """Priority level is not part of the fixed vocabulary."""

    code: str = "INVALID_PRIORITY"

    def __init__(self, priority: str):
        self.priority = priority
        super().__init__(f"Invalid priority level: {priority}", rule="priority")


# State exceptions


class InvalidStateError(AgromedKernelError):
    """Base exception for operations refused by the submission status."""

    code: str = "INVALID_STATE"


class SubmissionNotApprovableError(InvalidStateError):
    """Submission is not in an approvable status."""

    code: str = "SUBMISSION_NOT_APPROVABLE"

    def __init__(self, submission_id: str, status: str):
        self.submission_id = submission_id
        self.status = status
        super().__init__(
            f"Cannot approve submission {submission_id} with status: {status}"
        )


class InvalidStatusTransitionError(InvalidStateError):
    """Target status is not reachable from the current status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition: {from_status} -> {to_status}"
        )


# Quantity exceptions


class QuantityExceededError(AgromedKernelError):
    """Approved quantity exceeds the requested quantity."""

    code: str = "QUANTITY_EXCEEDED"

    def __init__(
        self,
        medicine_name: str,
        approved_quantity: Decimal,
        requested_quantity: Decimal,
    ):
        self.medicine_name = medicine_name
        self.approved_quantity = str(approved_quantity)
        self.requested_quantity = str(requested_quantity)
        super().__init__(
            f"Approved quantity ({approved_quantity}) cannot exceed requested "
            f"quantity ({requested_quantity}) for {medicine_name}"
        )


class InsufficientStockError(AgromedKernelError):
    """Approved quantity exceeds the live available stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        medicine_name: str,
        approved_quantity: Decimal,
        available_quantity: Decimal,
    ):
        self.medicine_name = medicine_name
        self.approved_quantity = str(approved_quantity)
        self.available_quantity = str(available_quantity)
        super().__init__(
            f"Approved quantity ({approved_quantity}) exceeds available "
            f"stock ({available_quantity}) for {medicine_name}"
        )


# Authorization exceptions


class PermissionDeniedError(AgromedKernelError):
    """Actor does not hold approval authority."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, operation: str):
        self.actor_id = actor_id
        self.operation = operation
        super().__init__(
            f"Insufficient permissions for {operation}: actor {actor_id}"
        )


# Concurrency exceptions


class ConflictError(AgromedKernelError):
    """Base exception for concurrent-modification conflicts."""

    code: str = "CONFLICT"


class StaleSubmissionStatusError(ConflictError):
    """
    Conditional status update matched no row.

    Another decision committed between validation and execution, either
    moving the status or, for a decision that keeps it (request_revision),
    bumping the submission version. The caller should reload the
    submission and re-validate.
    """

    code: str = "STALE_SUBMISSION_STATUS"

    def __init__(
        self,
        submission_id: str,
        expected_status: str,
        actual_status: str | None,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.submission_id = submission_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Submission {submission_id} changed concurrently: "
            f"expected status {expected_status} (version {expected_version}), "
            f"found {actual_status} (version {actual_version})"
        )


# Configuration exceptions


class ConfigurationError(AgromedKernelError):
    """Engine configuration is malformed or inconsistent."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid engine configuration ({source}): {reason}")
