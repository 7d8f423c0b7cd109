"""Core type definitions for the formsteps form engine.

This module defines the fundamental enums used throughout formsteps:
- FieldType: Input variants a schema may declare for a field
- FieldRole: Explicit semantic roles that enable cross-cutting rules
- FieldErrorCode: Validation error codes for individual fields
- ErrorType: Categories of engine errors (load, validation, delivery)
- EventType: Audit event types for the session event stream
- SessionStatus: Lifecycle status of a form session
- NavigationAction: Transition requests understood by the section navigator

These types form the contract between the form engine and any UI or
verification tooling driving it.
"""

from enum import Enum


class FieldType(str, Enum):
    """Field input variants.

    Each value maps to a registered Field subclass in formsteps.schema.
    """
    TEXT = "text"
    EMAIL = "email"
    TEL = "tel"
    DATE = "date"
    TEXTAREA = "textarea"
    RADIO = "radio"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"


class FieldRole(str, Enum):
    """Semantic roles a schema may attach to a field.

    Roles are declared explicitly in the schema; field identifiers are never
    inspected to infer them.
    """
    DATE_OF_BIRTH = "date-of-birth"


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures."""
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    BELOW_MINIMUM_AGE = "below_minimum_age"
    CUSTOM = "custom"


class ErrorType(str, Enum):
    """Error categories carried by FormStepsError and its subclasses.

    Validation errors are user-correctable and only block the current
    transition. Load and delivery errors are retryable by re-invoking the
    failed operation.
    """
    VALIDATION = "validation"
    LOAD_FAILED = "load_failed"
    TIMEOUT = "timeout"
    DELIVERY_FAILED = "delivery_failed"
    INVALID_NAVIGATION = "invalid_navigation"
    UNKNOWN_FIELD = "unknown_field"


class EventType(str, Enum):
    """Audit event types for the session event stream."""
    SCHEMA_LOADED = "schema.loaded"
    SCHEMA_LOAD_FAILED = "schema.load_failed"
    SCHEMA_DISCARDED = "schema.discarded"
    FIELD_UPDATED = "field.updated"
    SECTION_ENTERED = "section.entered"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    FORM_SUBMITTED = "form.submitted"
    SUBMISSION_FAILED = "submission.failed"
    SESSION_ENDED = "session.ended"


class SessionStatus(str, Enum):
    """Form session lifecycle status.

    LOADING until the first schema load completes, ACTIVE while the user is
    moving between sections, then one of the terminal statuses.
    """
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTED = "submitted"
    ENDED = "ended"


class NavigationAction(str, Enum):
    """Transition requests handled by the section navigator."""
    NEXT = "next"
    PREVIOUS = "previous"
    JUMP = "jump"
    SUBMIT = "submit"


__all__ = [
    "FieldType",
    "FieldRole",
    "FieldErrorCode",
    "ErrorType",
    "EventType",
    "SessionStatus",
    "NavigationAction",
]
