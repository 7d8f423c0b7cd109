"""Structured error types for the formsteps form engine.

Field-level validation failures are plain values (FieldError) that the
navigator and submission coordinator collect and expose. Everything that
interrupts an operation is raised as a FormStepsError subclass carrying an
ErrorType and a retryable flag, so callers can decide whether re-invoking the
operation makes sense.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from formsteps.types import ErrorType, FieldErrorCode, NavigationAction, SessionStatus

REQUIRED_MESSAGE = "This field is required"
INVALID_FORMAT_MESSAGE = "Invalid format"
INVALID_OPTION_MESSAGE = "Please select a valid option"
MINIMUM_AGE_MESSAGE = "You must be at least {years} years old"


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        field_id: Identifier of the failing field (unique across the schema)
        code: Specific validation error code
        message: User-facing message, the field's declared validation message
            when it has one
        expected: Optional - what was expected (pattern, option values, age)
        received: Optional - what was actually received

    Examples:
        >>> err = FieldError(
        ...     field_id="email",
        ...     code=FieldErrorCode.INVALID_FORMAT,
        ...     message="Please enter a valid email address",
        ...     received="not-an-email"
        ... )
        >>> err.field_id
        'email'
    """
    field_id: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "fieldId": self.field_id,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            field_id=data["fieldId"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


class FormStepsError(Exception):
    """Base class for errors raised by the form engine.

    Attributes:
        error_type: Category of the failure
        retryable: Whether re-invoking the same operation may succeed
        message: Human-readable error message
    """

    error_type: ErrorType = ErrorType.VALIDATION
    retryable: bool = False

    def __init__(self, message: str, *, retryable: Optional[bool] = None):
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "type": self.error_type.value,
            "retryable": self.retryable,
            "message": self.message,
        }


class LoadError(FormStepsError):
    """Raised when the form schema could not be fetched or parsed.

    Fatal to session start but retryable: calling the loader again performs a
    fresh fetch, since failures never populate the cache.

    Attributes:
        params: Query parameters of the failed request, when known
        status_code: HTTP status of the response, when one was received
    """

    error_type = ErrorType.LOAD_FAILED
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        params: Optional[Dict[str, int]] = None,
        status_code: Optional[int] = None,
        timed_out: bool = False,
    ):
        self.params = params
        self.status_code = status_code
        if timed_out:
            self.error_type = ErrorType.TIMEOUT
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.params:
            result["params"] = self.params
        if self.status_code is not None:
            result["statusCode"] = self.status_code
        return result


class SubmissionError(FormStepsError):
    """Raised when the submit transport fails.

    The session stays on the last section with its FormState intact, so the
    user can retry once the transport recovers.
    """

    error_type = ErrorType.DELIVERY_FAILED
    retryable = True

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidNavigationError(FormStepsError):
    """Raised when a navigation request is not allowed from the current state.

    Attributes:
        action: The transition that was requested
        status: Session status at the time of the request
        index: Current section index at the time of the request
    """

    error_type = ErrorType.INVALID_NAVIGATION

    def __init__(
        self,
        action: NavigationAction,
        status: SessionStatus,
        index: Optional[int],
        message: str,
    ):
        self.action = action
        self.status = status
        self.index = index
        super().__init__(message)


class UnknownFieldError(FormStepsError, KeyError):
    """Raised when a value is addressed to a field id absent from the schema."""

    error_type = ErrorType.UNKNOWN_FIELD

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Unknown field id: '{field_id}'")

    def __str__(self) -> str:
        return self.message


__all__ = [
    "FieldError",
    "FormStepsError",
    "LoadError",
    "SubmissionError",
    "InvalidNavigationError",
    "UnknownFieldError",
    "REQUIRED_MESSAGE",
    "INVALID_FORMAT_MESSAGE",
    "INVALID_OPTION_MESSAGE",
    "MINIMUM_AGE_MESSAGE",
]
