"""
Domain exceptions mapped to HTTP responses in lms.main
"""


class LMSError(Exception):
    """Base class for expected, user-facing failures"""

    status_code = 400
    error = "lms_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LMSError):
    status_code = 404
    error = "not_found"


class ValidationError(LMSError):
    status_code = 422
    error = "validation_error"


class AttendanceClosedError(LMSError):
    status_code = 409
    error = "attendance_closed"


class InvalidTransitionError(LMSError):
    """A quiz session action that its current phase does not allow"""

    status_code = 409
    error = "invalid_transition"


class PersistenceError(LMSError):
    """A write failed and was rolled back; the action can be retried"""

    status_code = 503
    error = "persistence_error"
