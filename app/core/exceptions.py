"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and get
consistent HTTP status codes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, StepLockedError

    raise NotFoundError(resource="HrProject", resource_id=42)
    raise StepLockedError("performance", predecessor="organization")
    raise ValidationError("Answers are invalid", details={"present_headcount": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "HrProject", "Step").
        resource_id: The key that was looked up. Included in logs.
        company_id: Optional: the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        company_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.company_id = company_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if company_id is not None:
            msg += f" (company={company_id})"
        super().__init__(msg)


class UnknownStepError(NotFoundError):
    """Raised when a step key is not part of the workflow."""

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(resource="Step", resource_id=step)


class ValidationError(Exception):
    """Raised when input fails schema or business-rule validation.

    Maps to HTTP 422. ``details`` carries the field-level breakdown so the
    form can be re-rendered with per-field messages and the user's input kept.

    Args:
        message: Human-readable explanation of what failed.
        details: Field name -> error description.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate or lost update.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class StaleWriteError(ConflictError):
    """Raised when a row changed between read and write (optimistic lock miss)."""

    def __init__(self, resource: str, resource_id: int | None = None) -> None:
        self.resource = resource
        self.field = "lock_version"
        self.value = None
        self.resource_id = resource_id
        Exception.__init__(
            self, f"{resource} id={resource_id} was modified concurrently; reload and retry"
        )


class ForbiddenError(Exception):
    """Raised when the acting user's role or company membership forbids an action.

    Maps to HTTP 403. Raised before any mutation happens.
    """

    def __init__(self, user_id: int | None, action: str, reason: str | None = None) -> None:
        self.user_id = user_id
        self.action = action
        self.reason = reason
        msg = f"User {user_id} is not allowed to '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AuthenticationRequired(Exception):
    """Raised when a route needs an acting user and the request carries none."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class WorkflowError(Exception):
    """Base class for step-workflow state violations (HTTP 409)."""

    code = "ERR_CONFLICT_STATE"

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(message)


class StepLockedError(WorkflowError):
    """The step is not editable: its predecessor is not far enough along,
    or the step itself is already submitted / approved / locked."""

    code = "ERR_STEP_LOCKED"

    def __init__(self, step: str, predecessor: str | None = None, status: str | None = None) -> None:
        self.predecessor = predecessor
        self.status = status
        if predecessor:
            msg = f"Step '{step}' is locked until '{predecessor}' has been submitted"
        elif status:
            msg = f"Step '{step}' is locked (status={status})"
        else:
            msg = f"Step '{step}' is locked"
        super().__init__(step, msg)


class NotSubmittedError(WorkflowError):
    """Verify / revision attempted on a step that is not in ``submitted``."""

    code = "ERR_NOT_SUBMITTED"

    def __init__(self, step: str, status: str) -> None:
        self.status = status
        super().__init__(step, f"Step '{step}' has not been submitted yet (status={status})")


class InvalidTransitionError(WorkflowError):
    """A status change that the transition table does not allow."""

    def __init__(self, step: str, current: str, requested: str) -> None:
        self.current_status = current
        self.requested_status = requested
        super().__init__(step, f"Cannot move step '{step}' from '{current}' to '{requested}'")
