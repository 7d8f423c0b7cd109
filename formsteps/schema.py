"""Form schema model for the formsteps form engine.

A FormSchema is an ordered sequence of Sections, each holding an ordered
sequence of Fields. Schemas arrive as JSON documents from the form API in one
of two envelopes (``{"sections": [...]}`` or ``{"form": {"sections": [...]}}``);
FormSchema.from_payload unwraps either, checks the document against
SCHEMA_DOCUMENT with jsonschema, and builds immutable model objects.

Field behaviour is polymorphic over the declared ``type``: every variant is a
Field subclass registered with @register_field_type and carries its own value
normalization, emptiness test, JSON Schema for non-empty values, and optional
semantic checks. Adding a field type means adding one subclass.

Usage:
    >>> payload = {"sections": [{"title": "Personal", "fields": [
    ...     {"fieldId": "firstName", "type": "text", "required": True,
    ...      "dataTestId": "first-name"}]}]}
    >>> schema = FormSchema.from_payload(payload)
    >>> schema.section_count, schema.field_count
    (1, 1)
    >>> schema.get_field("firstName").field_type
    <FieldType.TEXT: 'text'>
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Type

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta
from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import best_match

from formsteps.errors import (
    INVALID_FORMAT_MESSAGE,
    MINIMUM_AGE_MESSAGE,
    FieldError,
)
from formsteps.types import FieldErrorCode, FieldRole, FieldType

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+\Z"
TEL_PATTERN = r"^[0-9]{10}\Z"

CHECKED_VALUES = {"true", "on", "1", "yes", "checked"}


OPTION_DOCUMENT = {
    "type": "object",
    "required": ["value"],
    "properties": {
        "value": {"type": ["string", "number"]},
        "label": {"type": "string"},
        "dataTestId": {"type": "string", "minLength": 1},
    },
}

FIELD_DOCUMENT = {
    "type": "object",
    "required": ["fieldId", "type"],
    "properties": {
        "fieldId": {"type": "string", "minLength": 1},
        "type": {"enum": [t.value for t in FieldType]},
        "label": {"type": "string"},
        "placeholder": {"type": "string"},
        "required": {"type": "boolean"},
        "dataTestId": {"type": "string", "minLength": 1},
        "role": {"enum": [r.value for r in FieldRole]},
        "options": {"type": "array", "items": OPTION_DOCUMENT},
        "validation": {
            "type": "object",
            "properties": {
                "message": {"type": "string"},
                "pattern": {"type": "string", "format": "regex"},
                "minLength": {"type": "integer", "minimum": 0},
                "maxLength": {"type": "integer", "minimum": 0},
                "minAge": {"type": "integer", "minimum": 0},
            },
        },
    },
    # radio and dropdown fields need at least one option
    "if": {"properties": {"type": {"enum": ["radio", "dropdown"]}}},
    "then": {"required": ["options"], "properties": {"options": {"minItems": 1}}},
}

SCHEMA_DOCUMENT = {
    "type": "object",
    "required": ["sections"],
    "properties": {
        "title": {"type": "string"},
        "sections": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["title", "fields"],
                "properties": {
                    "title": {"type": "string", "minLength": 1},
                    "description": {"type": "string"},
                    "fields": {"type": "array", "items": FIELD_DOCUMENT},
                },
            },
        },
    },
}

_document_validator = Draft7Validator(SCHEMA_DOCUMENT, format_checker=FormatChecker())


class SchemaDocumentError(ValueError):
    """Raised when a schema payload is not a well-formed form document."""


@dataclass(frozen=True)
class SchemaParams:
    """Fetch parameters that identify a schema shape.

    Both counts are optional; leaving both unset requests the default shape.
    Instances are hashable and compare by value, so they serve directly as
    cache keys.

    Examples:
        >>> SchemaParams().is_default
        True
        >>> SchemaParams(section_count=4).to_query()
        {'sectionCount': 4}
    """
    section_count: Optional[int] = None
    field_count: Optional[int] = None

    def __post_init__(self):
        for name in ("section_count", "field_count"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @property
    def is_default(self) -> bool:
        return self.section_count is None and self.field_count is None

    def to_query(self) -> Dict[str, int]:
        """Query parameters for ``GET /api/form``; absent counts are omitted."""
        query: Dict[str, int] = {}
        if self.section_count is not None:
            query["sectionCount"] = self.section_count
        if self.field_count is not None:
            query["fieldCount"] = self.field_count
        return query

    @classmethod
    def from_query(cls, query: Dict[str, Any]) -> "SchemaParams":
        """Create SchemaParams from camelCase query parameters."""
        section_count = query.get("sectionCount")
        field_count = query.get("fieldCount")
        return cls(
            section_count=int(section_count) if section_count is not None else None,
            field_count=int(field_count) if field_count is not None else None,
        )


@dataclass(frozen=True)
class ValidationContext:
    """Evaluation-time inputs for semantic field checks.

    Attributes:
        today: Date that age rules are evaluated against
        minimum_age_years: Default minimum age for date-of-birth fields
    """
    today: date
    minimum_age_years: int = 16


@dataclass(frozen=True)
class Option:
    """A selectable value of a radio or dropdown field."""
    value: str
    label: str
    data_test_id: Optional[str] = None

    def test_id(self, field_id: str) -> str:
        """Binding id of this option's control.

        Falls back to ``"{fieldId}-{value}"`` when the schema supplies none.
        """
        return self.data_test_id or f"{field_id}-{self.value}"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"value": self.value, "label": self.label}
        if self.data_test_id is not None:
            result["dataTestId"] = self.data_test_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Option":
        value = str(data["value"])
        return cls(
            value=value,
            label=data.get("label", value),
            data_test_id=data.get("dataTestId"),
        )


@dataclass(frozen=True)
class FieldRules:
    """Declared format rules and the user-facing message for a field.

    Attributes:
        message: Message shown for any failing required/format check
        pattern: Regular expression a non-empty value must match
        min_length: Minimum length of a non-empty text value
        max_length: Maximum length of a text value
        min_age: Minimum age in years, for date-of-birth fields
    """
    message: Optional[str] = None
    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_age: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.message is not None:
            result["message"] = self.message
        if self.pattern is not None:
            result["pattern"] = self.pattern
        if self.min_length is not None:
            result["minLength"] = self.min_length
        if self.max_length is not None:
            result["maxLength"] = self.max_length
        if self.min_age is not None:
            result["minAge"] = self.min_age
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FieldRules":
        data = data or {}
        return cls(
            message=data.get("message"),
            pattern=data.get("pattern"),
            min_length=data.get("minLength"),
            max_length=data.get("maxLength"),
            min_age=data.get("minAge"),
        )


FIELD_TYPES: Dict[FieldType, Type["Field"]] = {}


def register_field_type(cls: Type["Field"]) -> Type["Field"]:
    """Class decorator adding a Field variant to the type registry."""
    FIELD_TYPES[cls.field_type] = cls
    return cls


@dataclass(frozen=True)
class Field:
    """Base class for all field variants.

    Subclasses set ``field_type`` and override the value hooks they need.
    The FieldValidator drives these hooks in a fixed order: normalize, then
    the emptiness/required check, then value_schema, then semantic_check.

    Attributes:
        field_id: Identifier unique across the whole schema
        label: Display label
        required: Whether an empty value blocks navigation
        data_test_id: Stable binding key of the field's control
        rules: Declared format rules and message
        role: Optional semantic role enabling cross-cutting rules
        placeholder: Optional placeholder text
        options: Selectable options (choice fields only)
    """
    field_type: ClassVar[FieldType]

    field_id: str
    label: str = ""
    required: bool = False
    data_test_id: str = ""
    rules: FieldRules = field(default_factory=FieldRules)
    role: Optional[FieldRole] = None
    placeholder: Optional[str] = None
    options: Tuple[Option, ...] = ()

    @property
    def test_id(self) -> str:
        return self.data_test_id or self.field_id

    def default_value(self) -> Any:
        return ""

    def normalize(self, value: Any) -> Any:
        """Coerce a raw UI value into this field's stored representation."""
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    def is_empty(self, value: Any) -> bool:
        return not str(value).strip()

    def value_schema(self) -> Dict[str, Any]:
        """JSON Schema that a non-empty normalized value must satisfy."""
        return {"type": "string"}

    def semantic_check(self, value: Any, context: ValidationContext) -> Optional[FieldError]:
        """Checks that JSON Schema cannot express; None means the value passes."""
        return None

    def message_or(self, default: str) -> str:
        return self.rules.message or default

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "fieldId": self.field_id,
            "type": self.field_type.value,
            "label": self.label,
            "required": self.required,
            "dataTestId": self.test_id,
        }
        if self.placeholder is not None:
            result["placeholder"] = self.placeholder
        if self.role is not None:
            result["role"] = self.role.value
        if self.options:
            result["options"] = [o.to_dict() for o in self.options]
        rules = self.rules.to_dict()
        if rules:
            result["validation"] = rules
        return result

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Field":
        """Build the registered variant for ``data["type"]``."""
        variant = FIELD_TYPES[FieldType(data["type"])]
        role = data.get("role")
        return variant(
            field_id=data["fieldId"],
            label=data.get("label", data["fieldId"]),
            required=bool(data.get("required", False)),
            data_test_id=data.get("dataTestId") or data["fieldId"],
            rules=FieldRules.from_dict(data.get("validation")),
            role=FieldRole(role) if role is not None else None,
            placeholder=data.get("placeholder"),
            options=tuple(Option.from_dict(o) for o in data.get("options", [])),
        )


@register_field_type
@dataclass(frozen=True)
class TextField(Field):
    field_type: ClassVar[FieldType] = FieldType.TEXT

    def value_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": "string"}
        if self.rules.min_length is not None:
            schema["minLength"] = self.rules.min_length
        if self.rules.max_length is not None:
            schema["maxLength"] = self.rules.max_length
        if self.rules.pattern is not None:
            schema["pattern"] = self.rules.pattern
        return schema


@register_field_type
@dataclass(frozen=True)
class TextAreaField(TextField):
    field_type: ClassVar[FieldType] = FieldType.TEXTAREA


@register_field_type
@dataclass(frozen=True)
class EmailField(Field):
    field_type: ClassVar[FieldType] = FieldType.EMAIL

    def value_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": "string", "pattern": self.rules.pattern or EMAIL_PATTERN}
        if self.rules.max_length is not None:
            schema["maxLength"] = self.rules.max_length
        return schema


@register_field_type
@dataclass(frozen=True)
class TelField(Field):
    """Telephone number: exactly ten digits."""
    field_type: ClassVar[FieldType] = FieldType.TEL

    def value_schema(self) -> Dict[str, Any]:
        return {"type": "string", "pattern": self.rules.pattern or TEL_PATTERN}


@register_field_type
@dataclass(frozen=True)
class DateField(Field):
    """Calendar date in ISO form (``YYYY-MM-DD``).

    With role ``date-of-birth`` the value must also be at least the minimum
    age in the past: ``validation.minAge`` when declared, otherwise the
    context's default.
    """
    field_type: ClassVar[FieldType] = FieldType.DATE

    def parse(self, value: str) -> date:
        return isoparse(value.strip()).date()

    def semantic_check(self, value: Any, context: ValidationContext) -> Optional[FieldError]:
        try:
            parsed = self.parse(value)
        except (ValueError, OverflowError):
            return FieldError(
                field_id=self.field_id,
                code=FieldErrorCode.INVALID_FORMAT,
                message=self.message_or(INVALID_FORMAT_MESSAGE),
                expected="date (YYYY-MM-DD)",
                received=value,
            )

        if self.role != FieldRole.DATE_OF_BIRTH:
            return None

        years = self.rules.min_age if self.rules.min_age is not None else context.minimum_age_years
        if relativedelta(context.today, parsed).years < years or parsed > context.today:
            return FieldError(
                field_id=self.field_id,
                code=FieldErrorCode.BELOW_MINIMUM_AGE,
                message=MINIMUM_AGE_MESSAGE.format(years=years),
                expected=f"at least {years} years before {context.today.isoformat()}",
                received=value,
            )
        return None


@dataclass(frozen=True)
class ChoiceField(Field):
    """Shared behaviour of single-choice fields: the value must be a listed option."""

    @property
    def option_values(self) -> List[str]:
        return [o.value for o in self.options]

    def value_schema(self) -> Dict[str, Any]:
        return {"enum": self.option_values}

    def get_option(self, value: str) -> Optional[Option]:
        for option in self.options:
            if option.value == value:
                return option
        return None


@register_field_type
@dataclass(frozen=True)
class RadioField(ChoiceField):
    field_type: ClassVar[FieldType] = FieldType.RADIO


@register_field_type
@dataclass(frozen=True)
class DropdownField(ChoiceField):
    field_type: ClassVar[FieldType] = FieldType.DROPDOWN


@register_field_type
@dataclass(frozen=True)
class CheckboxField(Field):
    """Boolean field; a required checkbox must be checked."""
    field_type: ClassVar[FieldType] = FieldType.CHECKBOX

    def default_value(self) -> Any:
        return False

    def normalize(self, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        return str(value).strip().lower() in CHECKED_VALUES

    def is_empty(self, value: Any) -> bool:
        return value is not True

    def value_schema(self) -> Dict[str, Any]:
        return {"type": "boolean"}


@dataclass(frozen=True)
class Section:
    """A titled group of fields presented as one navigable page."""
    title: str
    fields: Tuple[Field, ...] = ()
    description: Optional[str] = None

    @property
    def field_ids(self) -> List[str]:
        return [f.field_id for f in self.fields]

    def get_field(self, field_id: str) -> Optional[Field]:
        for f in self.fields:
            if f.field_id == field_id:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "title": self.title,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            title=data["title"],
            fields=tuple(Field.from_dict(f) for f in data.get("fields", [])),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class FormSchema:
    """An ordered sequence of sections, tagged with the params that produced it.

    Attributes:
        sections: Sections in display order
        params: Fetch parameters this schema was retrieved with
        title: Optional form title supplied by the API
    """
    sections: Tuple[Section, ...]
    params: SchemaParams = field(default_factory=SchemaParams)
    title: Optional[str] = None

    @property
    def section_count(self) -> int:
        return len(self.sections)

    @property
    def field_count(self) -> int:
        return sum(len(s.fields) for s in self.sections)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.section_count, self.field_count

    def iter_fields(self) -> Iterator[Field]:
        for section in self.sections:
            yield from section.fields

    def get_field(self, field_id: str) -> Optional[Field]:
        for f in self.iter_fields():
            if f.field_id == field_id:
                return f
        return None

    def section_index_of(self, field_id: str) -> Optional[int]:
        for index, section in enumerate(self.sections):
            if section.get_field(field_id) is not None:
                return index
        return None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"sections": [s.to_dict() for s in self.sections]}
        if self.title is not None:
            result["title"] = self.title
        return result

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        params: Optional[SchemaParams] = None,
    ) -> "FormSchema":
        """Build a schema from an API response body.

        Accepts both ``{"sections": [...]}`` and ``{"form": {"sections": [...]}}``.

        Raises:
            SchemaDocumentError: If the body is not a valid form document, a
                field id or section title repeats, or a pattern is not a
                valid regular expression
        """
        document = unwrap_envelope(payload)

        error = best_match(_document_validator.iter_errors(document))
        if error is not None:
            location = ".".join(str(p) for p in error.absolute_path) or "<root>"
            raise SchemaDocumentError(f"Invalid form schema at '{location}': {error.message}")

        _check_unique(
            [s["title"] for s in document["sections"]],
            "section title",
        )
        _check_unique(
            [f["fieldId"] for s in document["sections"] for f in s["fields"]],
            "field id",
        )

        title = document.get("title")
        if title is None and isinstance(payload, dict):
            title = payload.get("title") or payload.get("formTitle")

        return cls(
            sections=tuple(Section.from_dict(s) for s in document["sections"]),
            params=params or SchemaParams(),
            title=title,
        )


def unwrap_envelope(payload: Any) -> Dict[str, Any]:
    """Return the document holding ``sections`` from either response envelope."""
    if isinstance(payload, dict):
        form = payload.get("form")
        if isinstance(form, dict):
            return form
        if "sections" in payload:
            return payload
    raise SchemaDocumentError("Response body contains neither 'sections' nor 'form.sections'")


def _check_unique(values: List[str], what: str) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise SchemaDocumentError(f"Duplicate {what} in form schema: '{value}'")
        seen.add(value)


__all__ = [
    "SchemaParams",
    "ValidationContext",
    "Option",
    "FieldRules",
    "Field",
    "TextField",
    "TextAreaField",
    "EmailField",
    "TelField",
    "DateField",
    "ChoiceField",
    "RadioField",
    "DropdownField",
    "CheckboxField",
    "Section",
    "FormSchema",
    "SchemaDocumentError",
    "FIELD_TYPES",
    "register_field_type",
    "unwrap_envelope",
    "SCHEMA_DOCUMENT",
]
