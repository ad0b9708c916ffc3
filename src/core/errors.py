"""
Intake error taxonomy.

Raised by the repository, the email client and the validators; caught at the
submission pipeline boundary and turned into a single user-facing message.
"""


class IntakeError(Exception):
    """Base class for every error the intake flow raises on purpose."""

    def __init__(self, message: str = "", detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self):
        return self.message


class ValidationError(IntakeError):
    """Missing contact fields or empty service selection. No I/O was attempted."""

    def __init__(self, message: str = "Validation failed", field_errors: dict = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class PersistenceError(IntakeError):
    """A database insert failed. `detail` holds the driver/API error text."""


class NotificationError(IntakeError):
    """Email delivery failed. `status` is the HTTP status when one came back."""

    def __init__(self, message: str = "", detail: str = "", status: int = None):
        super().__init__(message, detail)
        self.status = status
