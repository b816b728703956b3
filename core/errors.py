from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    AUTHENTICATION_FAILED = "authentication_failed"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    PAYMENT_INVALID = "payment_invalid"
    INTERNAL = "internal"


STATUS_CODES = {
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.AUTHENTICATION_FAILED: 401,
    ErrorKind.PAYMENT_INVALID: 402,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class NameServiceError(Exception):
    """Base for every error the name service reports to callers.

    ``message`` is safe to show to end users. ``code`` optionally narrows the
    kind (e.g. ``"expired"`` vs ``"already_used"`` for a reservation link).
    """

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.message, "kind": self.kind.value}
        if self.code:
            body["code"] = self.code
        return body


class ValidationFailed(NameServiceError):
    kind = ErrorKind.VALIDATION_FAILED


class AuthenticationFailed(NameServiceError):
    kind = ErrorKind.AUTHENTICATION_FAILED


class Forbidden(NameServiceError):
    kind = ErrorKind.FORBIDDEN


class Conflict(NameServiceError):
    kind = ErrorKind.CONFLICT


class NotFound(NameServiceError):
    kind = ErrorKind.NOT_FOUND


class PaymentInsufficientOrInvalid(NameServiceError):
    kind = ErrorKind.PAYMENT_INVALID


class InternalError(NameServiceError):
    kind = ErrorKind.INTERNAL
