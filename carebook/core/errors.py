"""Error taxonomy shared by every module.

Services raise these; `carebook.main` maps them onto HTTP responses. The
`retryable` flag marks the kinds a caller may safely repeat with fresh state.
"""


class CarebookError(Exception):
    code = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class ValidationError(CarebookError):
    code = "validation_error"
    status_code = 422


class NotFoundError(CarebookError):
    code = "not_found"
    status_code = 404


class UserNotFoundError(NotFoundError):
    pass


class BookingNotFoundError(NotFoundError):
    pass


class NoCreditAvailableError(NotFoundError):
    code = "no_credit_available"

    def __init__(self, message: str | None = None):
        super().__init__(message or "No unused, non-expired credits found.")


class InvalidTransitionError(CarebookError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move booking from '{current}' to '{requested}'")


class ConflictError(CarebookError):
    code = "conflict"
    status_code = 409
    retryable = True


class TransientError(CarebookError):
    code = "transient"
    status_code = 503
    retryable = True


class InternalError(CarebookError):
    code = "internal_error"
    status_code = 500
