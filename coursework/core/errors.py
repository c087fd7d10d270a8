"""Domain errors raised by the workflow services.

Each error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. Services raise them; ``coursework.main`` renders them.
"""


class CourseworkError(Exception):
    code = "E_COURSEWORK"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(CourseworkError):
    code = "E_VALIDATION"
    status_code = 422


class OutOfRange(ValidationError):
    code = "E_OUT_OF_RANGE"


class NotFound(CourseworkError):
    code = "E_NOT_FOUND"
    status_code = 404


class Conflict(CourseworkError):
    code = "E_CONFLICT"
    status_code = 409


class InvalidTransition(CourseworkError):
    code = "E_INVALID_TRANSITION"
    status_code = 409


class InvalidState(CourseworkError):
    code = "E_INVALID_STATE"
    status_code = 409


class StorageFailure(CourseworkError):
    code = "E_STORAGE"
    status_code = 502


class CascadeFailure(CourseworkError):
    """One step of the ordered assignment deletion failed; nothing was removed."""

    code = "E_CASCADE"
    status_code = 500

    def __init__(self, step: str, detail: str):
        super().__init__(f"Cascade delete failed at step '{step}': {detail}")
        self.step = step
