"""Error taxonomy shared by the workflow services and the JSON error handlers."""


class WorkflowError(Exception):
    """Base class for failures reported to API callers."""

    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_payload(self) -> dict:
        return {"error": self.message}


class Unauthorized(WorkflowError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(WorkflowError):
    status_code = 403
    default_message = "Forbidden"


class InvalidInput(WorkflowError):
    status_code = 400
    default_message = "Invalid input"


class NotFound(WorkflowError):
    status_code = 404
    default_message = "Not found"


class Conflict(WorkflowError):
    status_code = 409
    default_message = "Operation not allowed in the current state"


class DependencyFailure(WorkflowError):
    status_code = 500
    default_message = "A backing service is unavailable"
