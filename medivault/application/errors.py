from dataclasses import dataclass
from functools import wraps
from typing import Any, Optional


class DomainError(Exception):
    """
    Base class for every error the domain layer reports.

    Serialized form:
    {
        "type": "error",
        "code": "DOCTOR_NOT_FOUND",
        "message": "Doctor not found",
        "detail": ["No doctor profile with id 7"]
    }
    """
    code = "DOMAIN_ERROR"
    http_status = 500
    message = "An unexpected error occurred"

    def __init__(self, message=None, detail=None, code=None):
        if message:
            self.message = message
        if code:
            self.code = code

        if detail is None:
            self.detail = []
        elif isinstance(detail, str):
            self.detail = [detail]
        else:
            self.detail = list(detail)

        super().__init__(self.message)

    def to_dict(self):
        return {
            "type": "error",
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
        }


class ValidationError(DomainError):
    """Malformed or missing input; the caller can fix it and retry."""
    code = "VALIDATION_ERROR"
    http_status = 400
    message = "Input validation failed"


class NotFound(DomainError):
    code = "NOT_FOUND"
    http_status = 404
    message = "Record not found"


class DuplicateIdentity(DomainError):
    code = "DUPLICATE_IDENTITY"
    http_status = 409
    message = "Username or email already exists"


class InvalidCredential(DomainError):
    code = "INVALID_CREDENTIAL"
    http_status = 401
    message = "Invalid credentials"


class Forbidden(DomainError):
    code = "FORBIDDEN"
    http_status = 403
    message = "You are not allowed to perform this action"


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"
    http_status = 409
    message = "Appointment cannot move to the requested status"


class SlotUnavailable(DomainError):
    """The doctor already has a live appointment at that date and time."""
    code = "SLOT_UNAVAILABLE"
    http_status = 409
    message = "Slot already booked"


class PartialFailure(DomainError):
    """
    A multi-step write stopped half way.
    user_id names the row that was committed and needs a compensating delete.
    """
    code = "PARTIAL_FAILURE"
    http_status = 500
    message = "Operation was only partially completed"

    def __init__(self, message=None, detail=None, code=None, user_id=None):
        super().__init__(message=message, detail=detail, code=code)
        self.user_id = user_id

    def to_dict(self):
        data = super().to_dict()
        data["user_id"] = self.user_id
        return data


class StoreError(DomainError):
    """The record or object store failed. Never retried here."""
    code = "STORE_ERROR"
    http_status = 503
    message = "Storage backend error"


@dataclass(frozen=True)
class Result:
    value: Any = None
    error: Optional[DomainError] = None

    @property
    def ok(self):
        return self.error is None

    @classmethod
    def success(cls, value=None):
        return cls(value=value)

    @classmethod
    def failure(cls, error):
        return cls(error=error)

    def unwrap(self):
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value


def returns_result(f):
    """Run f and wrap its outcome in a Result; DomainErrors become failures."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return Result.success(f(*args, **kwargs))
        except DomainError as exc:
            return Result.failure(exc)
    return wrapper
