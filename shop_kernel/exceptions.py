"""
Typed Exception Hierarchy for the Shop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a UI layer, a script, a test) need to tell "the quantity was bad"
apart from "the asset is already checked out" without parsing messages.
Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA stored as attributes (not just a message string)

Example:
    try:
        tracker.checkout(asset_id, employee_id)
    except AlreadyAssignedError as e:
        show_banner(f"{e.asset_id} is out with {e.employee_id}")
    except StateConflictError as e:
        show_banner(e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ShopKernelError:

    ShopKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidAmountError
    |   +-- MissingFieldError
    |   +-- DuplicateRecordError
    |
    +-- NotFoundError
    |   +-- EntityNotFoundError
    |
    +-- StateConflictError
    |   +-- InvalidStateTransitionError
    |   +-- NotAvailableError
    |   |   +-- AlreadyAssignedError
    |   +-- NotOpenError
    |   +-- ImmutableRecordError
    |
    +-- ReferentialConflictError
    |
    +-- AuthorizationError
    |   +-- NotAuthenticatedError
    |   +-- PermissionDeniedError
    |
    +-- PersistenceWarning

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | Quantity not a positive integer
                | INVALID_AMOUNT              | Money amount zero/negative/not numeric
                | MISSING_FIELD               | Required field empty
                | DUPLICATE_RECORD            | Unique value already used
----------------|-----------------------------|-----------------------------------------
Not found       | ENTITY_NOT_FOUND            | Unknown id reference
----------------|-----------------------------|-----------------------------------------
State           | INVALID_STATE_TRANSITION    | Transition not in the state machine
                | ALREADY_ASSIGNED            | Asset already has an open assignment
                | NOT_AVAILABLE               | Asset / employee cannot be checked out
                | NOT_OPEN                    | Assignment already returned
                | IMMUTABLE_RECORD            | Resolved record modified or removed
----------------|-----------------------------|-----------------------------------------
Referential     | REFERENTIAL_CONFLICT        | Removal of a record still referenced
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_AUTHENTICATED           | No current session
                | PERMISSION_DENIED           | Role / permission flag forbids action
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_WARNING         | Snapshot save/load failed (non-fatal)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation, not-found and state errors leave the store unchanged.  They
   are always safe to show to the user and retry.

2. PersistenceWarning is never raised out of a mutation.  The root
   controller records it in ``ShopApplication.warnings`` and logs it; the
   in-memory state stays authoritative.
"""


class ShopKernelError(Exception):
    """
    Base exception for all shop kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SHOP_KERNEL_ERROR"


# Validation exceptions


class ValidationError(ShopKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str = "must be a positive integer"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


class InvalidAmountError(ValidationError):
    """Monetary amount is not acceptable for the operation."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class MissingFieldError(ValidationError):
    """A required field was empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, entity_type: str, field_name: str):
        self.entity_type = entity_type
        self.field_name = field_name
        super().__init__(f"{entity_type}.{field_name} is required")


class DuplicateRecordError(ValidationError):
    """A value that must be unique is already in use."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, entity_type: str, field_name: str, value: str):
        self.entity_type = entity_type
        self.field_name = field_name
        self.value = value
        super().__init__(f"{entity_type} with {field_name}={value!r} already exists")


# Not-found exceptions


class NotFoundError(ShopKernelError):
    """Base exception for unknown references."""

    code: str = "NOT_FOUND"


class EntityNotFoundError(NotFoundError):
    """Record with given id does not exist in its collection."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# State exceptions


class StateConflictError(ShopKernelError):
    """Base exception for operations the current state does not allow."""

    code: str = "STATE_CONFLICT"


class InvalidStateTransitionError(StateConflictError):
    """Requested transition is not an edge of the state machine."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, from_state: str, to_state: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"{entity_type} {entity_id} cannot move from '{from_state}' to '{to_state}'"
        )


class NotAvailableError(StateConflictError):
    """Record is not in a state that allows checkout."""

    code: str = "NOT_AVAILABLE"

    def __init__(self, entity_type: str, entity_id: str, status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.status = status
        super().__init__(f"{entity_type} {entity_id} is not available (status: {status})")


class AlreadyAssignedError(NotAvailableError):
    """Asset already has an open assignment.

    A NotAvailableError as well: an assigned asset is never available.
    """

    code: str = "ALREADY_ASSIGNED"

    def __init__(self, asset_id: str, assignment_id: str, employee_id: str):
        self.asset_id = asset_id
        self.assignment_id = assignment_id
        self.employee_id = employee_id
        StateConflictError.__init__(
            self,
            f"Asset {asset_id} is already assigned to {employee_id} "
            f"(assignment {assignment_id})",
        )
        self.entity_type = "Asset"
        self.entity_id = asset_id
        self.status = "Assigned"


class NotOpenError(StateConflictError):
    """Assignment has already been checked in."""

    code: str = "NOT_OPEN"

    def __init__(self, assignment_id: str, return_date: str):
        self.assignment_id = assignment_id
        self.return_date = return_date
        super().__init__(f"Assignment {assignment_id} was already returned on {return_date}")


class ImmutableRecordError(StateConflictError):
    """Resolved record cannot be modified or removed."""

    code: str = "IMMUTABLE_RECORD"

    def __init__(self, entity_type: str, entity_id: str, status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.status = status
        super().__init__(f"{entity_type} {entity_id} is immutable in status '{status}'")


# Referential exceptions


class ReferentialConflictError(ShopKernelError):
    """Record cannot be removed while other records still reference it."""

    code: str = "REFERENTIAL_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        referenced_by: str,
        referencing_ids: tuple[str, ...],
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.referenced_by = referenced_by
        self.referencing_ids = referencing_ids
        super().__init__(
            f"{entity_type} {entity_id} is referenced by {referenced_by} "
            f"{', '.join(referencing_ids)}"
        )


# Authorization exceptions


class AuthorizationError(ShopKernelError):
    """Base exception for access control failures."""

    code: str = "AUTHORIZATION_ERROR"


class NotAuthenticatedError(AuthorizationError):
    """Operation needs a logged-in employee and there is none."""

    code: str = "NOT_AUTHENTICATED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Login required for {operation}")


class PermissionDeniedError(AuthorizationError):
    """Employee's role or permission flags do not allow the action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, employee_id: str, action: str, reason: str):
        self.employee_id = employee_id
        self.action = action
        self.reason = reason
        super().__init__(f"Employee {employee_id} may not {action}: {reason}")


# Persistence


class PersistenceWarning(ShopKernelError):
    """
    Snapshot save or load failed.

    Non-fatal: recorded and logged, never propagated out of a mutation.
    """

    code: str = "PERSISTENCE_WARNING"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence {operation} failed: {reason}")
