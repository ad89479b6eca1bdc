"""
Domain errors raised by the session, tracking and permission layers.

Each error carries the HTTP status the API boundary answers with, so the
exception handler in views_api only has to read ``status_code`` and
``message``.
"""


class BilliardsError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(BilliardsError):
    """Entity absent, or present but not in the state the operation needs."""
    status_code = 404
    default_message = "Not found"


class ConflictError(BilliardsError):
    status_code = 409
    default_message = "Conflict with current state"


class AuthorizationError(BilliardsError):
    status_code = 403
    default_message = "You don't have access to this resource"


class ValidationError(BilliardsError):
    status_code = 400
    default_message = "Invalid request"


class InternalError(BilliardsError):
    status_code = 500


class SessionClosedError(NotFoundError):
    """The session exists but already reached COMPLETED or CANCELLED."""
    status_code = 400

    def __init__(self, status):
        super().__init__(f"Session is already {status.lower()}")
        self.status = status


class MissingProfileError(ValidationError):
    default_message = "User profile not found"
