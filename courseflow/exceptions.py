"""Domain exception classes for the lifecycle service.

Raised by service-layer code. Expected domain conditions are turned into
failed results by ``unit_of_work.perform``; storage failures propagate.
"""


class DomainError(Exception):
    """Base class for expected domain conditions."""

    kind = "domain_error"


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, identifier=""):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class NoTipVersionError(NotFoundError):
    """Raised when a branch has no tip version to work from."""

    def __init__(self, branch_id=""):
        super().__init__("Tip version for branch", branch_id)


class InvalidTransitionError(DomainError):
    """Raised when a status change is not allowed from the current state."""

    kind = "invalid_transition"

    def __init__(self, current: str, target: str, detail: str = ""):
        self.current = current
        self.target = target
        message = f"Cannot transition from {current} to {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AlreadyClosedError(InvalidTransitionError):
    """Raised when acting on a merged or rejected merge request."""

    def __init__(self, request_id, status: str):
        self.request_id = request_id
        super().__init__(status, status, f"merge request {request_id} is already closed")


class ConstraintViolationError(DomainError):
    """Raised when an invariant would be broken."""

    kind = "constraint_violation"


class ConcurrentModificationError(DomainError):
    """Raised when a row no longer matches the state it was read in."""

    kind = "concurrent_modification"

    def __init__(self, entity: str, identifier=""):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} was modified concurrently")


class PartialFailureError(Exception):
    """Raised when a multi-step operation failed after some steps ran.

    The transaction has been rolled back; ``step`` names the step that
    failed and ``ids`` the identifiers of the operation.
    """

    def __init__(self, operation: str, step: str, completed: list, ids: dict):
        self.operation = operation
        self.step = step
        self.completed = completed
        self.ids = ids
        super().__init__(f"{operation} failed at step '{step}' after {completed} ({ids})")


class UpstreamError(Exception):
    """Raised when the persistence layer itself fails."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        super().__init__(f"Storage error during {operation}: {detail}")
