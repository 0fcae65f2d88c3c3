"""Error kinds raised by the activity engine.

Routes never build HTTP errors for these directly; ``capms.main`` maps each
kind to a status code in a single exception handler.
"""


class EngineError(Exception):
    kind = "engine_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    """Missing or invalid input. Nothing was persisted."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(EngineError):
    kind = "not_found"
    status_code = 404


class StateConflictError(EngineError):
    """The requested transition is not allowed from the current status."""

    kind = "state_conflict"
    status_code = 409


class AccessDeniedError(EngineError):
    kind = "access_denied"
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class DependencyError(EngineError):
    """A collaborator (document store, database) failed."""

    kind = "dependency_error"
    status_code = 502
