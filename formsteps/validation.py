"""Field validation engine for the formsteps form engine.

This module provides a FieldValidator that evaluates field values against
their declared rules and produces structured results the navigator can gate
transitions on.

Each field variant describes a non-empty value with a JSON Schema fragment
(Field.value_schema); the validator runs it through jsonschema and translates
the resulting errors into FieldError objects with specific codes. The field's
declared ``validation.message`` replaces the generic message for any failing
required or format check. Semantic rules that JSON Schema cannot express
(calendar dates, minimum age) run afterwards through Field.semantic_check.

Validation is pure and synchronous: no network or storage access.
"""

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import jsonschema
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from formsteps.errors import (
    INVALID_FORMAT_MESSAGE,
    INVALID_OPTION_MESSAGE,
    REQUIRED_MESSAGE,
    FieldError,
)
from formsteps.schema import Field, FormSchema, Section, ValidationContext
from formsteps.types import FieldErrorCode

DEFAULT_MINIMUM_AGE_YEARS = 16


@dataclass(frozen=True)
class FieldValidationResult:
    """Result of validating one field value.

    Attributes:
        field_id: The validated field
        error: The failure, or None when the value is valid
    """
    field_id: str
    error: Optional[FieldError] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None


@dataclass(frozen=True)
class SectionValidationResult:
    """Result of validating a group of fields (a section or a whole form).

    A group is valid iff every required field is non-empty and every
    non-empty field passes its format checks.

    Attributes:
        is_valid: Whether every field passed
        errors: Field-level errors in field order (empty if valid)
        missing_fields: Ids of required fields left empty
        invalid_fields: Ids of populated fields failing a format or semantic check

    Examples:
        >>> result = SectionValidationResult(is_valid=True, errors=[])
        >>> result.errors_by_field
        {}
    """
    is_valid: bool
    errors: List[FieldError]
    missing_fields: Optional[List[str]] = None
    invalid_fields: Optional[List[str]] = None

    @property
    def errors_by_field(self) -> Dict[str, FieldError]:
        return {e.field_id: e for e in self.errors}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.missing_fields is not None:
            result["missingFields"] = self.missing_fields
        if self.invalid_fields is not None:
            result["invalidFields"] = self.invalid_fields
        return result


class FieldValidator:
    """Validation engine for form field values.

    Attributes:
        minimum_age_years: Default minimum age for date-of-birth fields

    Examples:
        >>> from formsteps.schema import TelField
        >>> validator = FieldValidator()
        >>> validator.validate(TelField(field_id="phone"), "1234567890").is_valid
        True
        >>> validator.validate(TelField(field_id="phone", required=True), "").error.code
        <FieldErrorCode.REQUIRED: 'required'>
    """

    def __init__(
        self,
        minimum_age_years: int = DEFAULT_MINIMUM_AGE_YEARS,
        today: Optional[date] = None,
    ) -> None:
        """Initialize the validator.

        Args:
            minimum_age_years: Default minimum age for date-of-birth fields
            today: Fixed evaluation date; the current date when omitted
        """
        self.minimum_age_years = minimum_age_years
        self._today = today
        self._validators: Dict[str, Draft7Validator] = {}

    def context(self) -> ValidationContext:
        return ValidationContext(
            today=self._today or date.today(),
            minimum_age_years=self.minimum_age_years,
        )

    def validate(self, field: Field, value: Any) -> FieldValidationResult:
        """Validate one value against its field's rules.

        Args:
            field: The field definition
            value: The raw value as held in FormState

        Returns:
            FieldValidationResult carrying the first failure, if any
        """
        value = field.normalize(value)

        if field.is_empty(value):
            if field.required:
                return FieldValidationResult(
                    field_id=field.field_id,
                    error=FieldError(
                        field_id=field.field_id,
                        code=FieldErrorCode.REQUIRED,
                        message=field.message_or(REQUIRED_MESSAGE),
                        expected="required field",
                    ),
                )
            # Optional and empty: format checks do not apply
            return FieldValidationResult(field_id=field.field_id)

        error = best_match(self._validator_for(field).iter_errors(value))
        if error is not None:
            return FieldValidationResult(
                field_id=field.field_id,
                error=self._translate_error(field, error),
            )

        return FieldValidationResult(
            field_id=field.field_id,
            error=field.semantic_check(value, self.context()),
        )

    def validate_section(self, section: Section, values: Dict[str, Any]) -> SectionValidationResult:
        """Validate every field of a section against the current values.

        Args:
            section: The section to validate
            values: Mapping of field id to current value (a FormState works)

        Returns:
            SectionValidationResult with per-field errors
        """
        return self._collect([self.validate(f, values.get(f.field_id)) for f in section.fields])

    def validate_form(self, schema: FormSchema, values: Dict[str, Any]) -> SectionValidationResult:
        """Validate every field in every section, in display order."""
        return self._collect([self.validate(f, values.get(f.field_id)) for f in schema.iter_fields()])

    def _collect(self, results: List[FieldValidationResult]) -> SectionValidationResult:
        errors: List[FieldError] = []
        missing_fields: List[str] = []
        invalid_fields: List[str] = []

        for result in results:
            if result.error is None:
                continue
            errors.append(result.error)
            if result.error.code == FieldErrorCode.REQUIRED:
                missing_fields.append(result.field_id)
            else:
                invalid_fields.append(result.field_id)

        return SectionValidationResult(
            is_valid=not errors,
            errors=errors,
            missing_fields=missing_fields,
            invalid_fields=invalid_fields,
        )

    def _validator_for(self, field: Field) -> Draft7Validator:
        # keyed by schema contents so fields with equal rules share one validator
        schema = field.value_schema()
        key = json.dumps(schema, sort_keys=True)
        validator = self._validators.get(key)
        if validator is None:
            validator = Draft7Validator(schema)
            self._validators[key] = validator
        return validator

    def _translate_error(self, field: Field, error: jsonschema.ValidationError) -> FieldError:
        """Translate a jsonschema ValidationError to a FieldError.

        Error mapping:
            - 'type' errors -> INVALID_TYPE
            - 'pattern' errors -> INVALID_FORMAT
            - 'enum' errors -> INVALID_VALUE
            - 'minLength' errors -> TOO_SHORT
            - 'maxLength' errors -> TOO_LONG
            - Other constraint errors -> CUSTOM
        """
        if error.validator == "type":
            return FieldError(
                field_id=field.field_id,
                code=FieldErrorCode.INVALID_TYPE,
                message=field.message_or(INVALID_FORMAT_MESSAGE),
                expected=error.validator_value,
                received=type(error.instance).__name__,
            )

        if error.validator == "pattern":
            return FieldError(
                field_id=field.field_id,
                code=FieldErrorCode.INVALID_FORMAT,
                message=field.message_or(INVALID_FORMAT_MESSAGE),
                expected=f"pattern: {error.validator_value}",
                received=error.instance,
            )

        if error.validator == "enum":
            return FieldError(
                field_id=field.field_id,
                code=FieldErrorCode.INVALID_VALUE,
                message=field.message_or(INVALID_OPTION_MESSAGE),
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator == "minLength":
            min_length = error.validator_value
            return FieldError(
                field_id=field.field_id,
                code=FieldErrorCode.TOO_SHORT,
                message=field.message_or(f"Must be at least {min_length} characters"),
                expected=f"minimum {min_length} characters",
                received=f"{len(error.instance)} characters",
            )

        if error.validator == "maxLength":
            max_length = error.validator_value
            return FieldError(
                field_id=field.field_id,
                code=FieldErrorCode.TOO_LONG,
                message=field.message_or(f"Must be at most {max_length} characters"),
                expected=f"maximum {max_length} characters",
                received=f"{len(error.instance)} characters",
            )

        return FieldError(
            field_id=field.field_id,
            code=FieldErrorCode.CUSTOM,
            message=field.message_or(INVALID_FORMAT_MESSAGE),
            expected=error.validator_value,
            received=error.instance,
        )


__all__ = [
    "FieldValidator",
    "FieldValidationResult",
    "SectionValidationResult",
    "DEFAULT_MINIMUM_AGE_YEARS",
]
