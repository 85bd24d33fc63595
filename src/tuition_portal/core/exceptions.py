class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ConflictError(ValidationError):
    """Raised when a write would break a uniqueness rule."""


class PaymentAlreadyExistsError(ConflictError):
    """Raised when a payment for the same student/class/month already exists."""

    def __init__(self, message: str = "Payment request already exists for this month"):
        super().__init__(message)


class SheetAlreadyExistsError(ConflictError):
    """Raised when the class already has an attendance sheet for the day."""

    def __init__(
        self,
        message: str = (
            "Attendance sheet already exists for today this class. "
            "Please update the existing one or delete it first."
        ),
    ):
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when a referenced record does not exist."""


class AuthenticationError(DomainError):
    """Raised when credentials or the access token are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class DataUnavailableError(DomainError):
    """Raised when derived data cannot be computed because storage failed."""
