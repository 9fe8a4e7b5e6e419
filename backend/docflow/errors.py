"""
Error taxonomy for the receipt workflow.

Every error carries a stable ``kind`` (returned to clients as ``error``) and
the HTTP status the API layer maps it to. Services raise these; the handlers
in ``docflow.main`` turn them into JSON responses.
"""


class DocflowError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailed(DocflowError):
    kind = "validation_failed"
    status_code = 400


class Unauthorized(DocflowError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(DocflowError):
    kind = "forbidden"
    status_code = 403


class NotFound(DocflowError):
    kind = "not_found"
    status_code = 404


class Conflict(DocflowError):
    kind = "conflict"
    status_code = 409


class InvalidState(DocflowError):
    """Raised when a transition's required source status does not hold."""

    kind = "invalid_state"
    status_code = 400

    def __init__(self, message: str, current_status: str | None = None):
        self.current_status = current_status
        super().__init__(message)


class PreconditionFailed(DocflowError):
    kind = "precondition_failed"
    status_code = 400


class Unavailable(DocflowError):
    kind = "unavailable"
    status_code = 503
