class ValidationError(ValueError):
    """Raised when a caller passes an out-of-range index or malformed value."""


class PersistenceError(RuntimeError):
    """Raised when a finished workout could not be written to the database."""

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class PRComputationError(RuntimeError):
    """Raised when personal records could not be evaluated after a save."""


class EmptySessionWarning(UserWarning):
    """Signals that ending a workout without exercises needs confirmation."""
