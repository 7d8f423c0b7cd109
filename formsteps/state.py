"""Live field values for a form session.

FormState maps every field id in the schema to its current value. It is
created when the schema first loads, mutated in place by user edits, and
discarded when the session ends. Navigation never touches it: only set,
clear, and reset change a value.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from formsteps.errors import UnknownFieldError
from formsteps.schema import Field, FormSchema, Section

logger = logging.getLogger(__name__)


class FormState:
    """Ordered mapping of field id to current value.

    Values are stored in each field's normalized representation: strings for
    text-like and choice fields, booleans for checkboxes.

    Examples:
        >>> from formsteps.schema import FormSchema
        >>> schema = FormSchema.from_payload({"sections": [{"title": "A", "fields": [
        ...     {"fieldId": "name", "type": "text"},
        ...     {"fieldId": "terms", "type": "checkbox"}]}]})
        >>> state = FormState(schema)
        >>> state.to_dict()
        {'name': '', 'terms': False}
        >>> state.set("terms", "on")
        >>> state["terms"]
        True
    """

    def __init__(self, schema: FormSchema, values: Optional[Dict[str, Any]] = None):
        self._fields: Dict[str, Field] = {}
        self._values: Dict[str, Any] = {}
        self._bind(schema)
        for field_id, value in (values or {}).items():
            self.set(field_id, value)

    def _bind(self, schema: FormSchema) -> None:
        self._fields = {f.field_id: f for f in schema.iter_fields()}
        self._values = {
            field_id: f.default_value() for field_id, f in self._fields.items()
        }

    def __getitem__(self, field_id: str) -> Any:
        if field_id not in self._values:
            raise UnknownFieldError(field_id)
        return self._values[field_id]

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def get(self, field_id: str, default: Any = None) -> Any:
        return self._values.get(field_id, default)

    def set(self, field_id: str, value: Any) -> None:
        """Store a user-entered value.

        Raises:
            UnknownFieldError: If the schema has no field with this id
        """
        field = self._fields.get(field_id)
        if field is None:
            raise UnknownFieldError(field_id)
        self._values[field_id] = field.normalize(value)

    def clear(self, field_id: str) -> None:
        """Reset one field to its empty value."""
        field = self._fields.get(field_id)
        if field is None:
            raise UnknownFieldError(field_id)
        self._values[field_id] = field.default_value()

    def reset(self) -> None:
        """Reset every field to its empty value."""
        for field_id, field in self._fields.items():
            self._values[field_id] = field.default_value()

    def filled_fields(self) -> List[str]:
        return [
            field_id for field_id, field in self._fields.items()
            if not field.is_empty(self._values[field_id])
        ]

    def values_for(self, section: Section) -> Dict[str, Any]:
        return {f.field_id: self._values[f.field_id] for f in section.fields}

    def rebind(self, schema: FormSchema) -> None:
        """Re-key the state to a schema of a different shape.

        Values of field ids present in both schemas survive; new ids start
        empty and ids no longer in the schema are dropped.
        """
        previous = self._values
        self._bind(schema)
        kept = 0
        for field_id, field in self._fields.items():
            if field_id in previous:
                self._values[field_id] = field.normalize(previous[field_id])
                kept += 1
        logger.debug(
            "Rebound form state to %d fields (%d values kept, %d dropped)",
            len(self._fields), kept, len(set(previous) - set(self._fields)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)


__all__ = [
    "FormState",
]
