class DispatchError(Exception):
    """Base class for command lifecycle errors surfaced to callers."""

    kind = "DispatchError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DispatchError):
    """Malformed input: empty device id, unknown action, drawer out of range."""

    kind = "ValidationError"


class NotFoundError(DispatchError):
    """Unknown command code or device."""

    kind = "NotFoundError"


class InvalidStateError(DispatchError):
    """Transition attempted on a command that is no longer PENDING."""

    kind = "InvalidStateError"

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status
