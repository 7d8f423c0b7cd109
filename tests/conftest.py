"""Shared fixtures: a registration form schema, a fake form API, and valid values."""

import json
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
import pytest
from dateutil.relativedelta import relativedelta

from formsteps.cache import SchemaCache
from formsteps.loader import SchemaLoader
from formsteps.schema import ChoiceField, Field, FormSchema, SchemaParams, Section
from formsteps.session import FormSession
from formsteps.submission import HttpSubmissionTransport, SubmissionCoordinator
from formsteps.types import FieldRole, FieldType
from formsteps.validation import FieldValidator

TODAY = date(2026, 10, 18)
BASE_URL = "http://testserver"


def registration_payload() -> Dict[str, Any]:
    """Three-section student registration form covering every field type."""
    return {
        "title": "College Student Registration and Course Enrollment",
        "sections": [
            {
                "title": "Personal Information",
                "description": "Tell us about yourself",
                "fields": [
                    {
                        "fieldId": "firstName",
                        "type": "text",
                        "label": "First Name",
                        "required": True,
                        "dataTestId": "first-name-input",
                        "validation": {
                            "minLength": 2,
                            "maxLength": 50,
                            "message": "First name must be between 2 and 50 characters",
                        },
                    },
                    {
                        "fieldId": "lastName",
                        "type": "text",
                        "label": "Last Name",
                        "required": True,
                        "dataTestId": "last-name-input",
                    },
                    {
                        "fieldId": "email",
                        "type": "email",
                        "label": "Email",
                        "required": True,
                        "dataTestId": "email-input",
                        "validation": {"message": "Please enter a valid email address"},
                    },
                    {
                        "fieldId": "phone",
                        "type": "tel",
                        "label": "Phone",
                        "required": True,
                        "dataTestId": "phone-input",
                        "validation": {"message": "Phone number must be 10 digits"},
                    },
                    {
                        "fieldId": "dateOfBirth",
                        "type": "date",
                        "label": "Date of Birth",
                        "required": True,
                        "role": "date-of-birth",
                        "dataTestId": "dob-input",
                    },
                ],
            },
            {
                "title": "Academic Details",
                "fields": [
                    {
                        "fieldId": "studentId",
                        "type": "text",
                        "label": "Student ID",
                        "required": False,
                        "dataTestId": "student-id-input",
                        "validation": {"pattern": "^[0-9]{9}$", "message": "Student ID must be 9 digits"},
                    },
                    {
                        "fieldId": "course",
                        "type": "dropdown",
                        "label": "Course",
                        "required": True,
                        "dataTestId": "course-select",
                        "options": [
                            {"value": "", "label": "Select a course"},
                            {"value": "cs", "label": "Computer Science"},
                            {"value": "math", "label": "Mathematics"},
                        ],
                    },
                    {
                        "fieldId": "yearOfStudy",
                        "type": "radio",
                        "label": "Year of Study",
                        "required": True,
                        "dataTestId": "year-of-study",
                        "options": [
                            {"value": "1", "label": "First", "dataTestId": "year-first"},
                            {"value": "2", "label": "Second"},
                        ],
                        "validation": {"message": "Please select your year of study"},
                    },
                    {
                        "fieldId": "startDate",
                        "type": "date",
                        "label": "Start Date",
                        "required": False,
                        "dataTestId": "start-date-input",
                    },
                    {
                        "fieldId": "bio",
                        "type": "textarea",
                        "label": "About You",
                        "required": False,
                        "dataTestId": "bio-input",
                        "validation": {"maxLength": 500},
                    },
                ],
            },
            {
                "title": "Emergency Contact",
                "fields": [
                    {
                        "fieldId": "emergencyName",
                        "type": "text",
                        "label": "Contact Name",
                        "required": True,
                        "dataTestId": "emergency-name-input",
                    },
                    {
                        "fieldId": "emergencyPhone",
                        "type": "tel",
                        "label": "Contact Phone",
                        "required": True,
                        "dataTestId": "emergency-phone-input",
                    },
                    {
                        "fieldId": "emergencyEmail",
                        "type": "email",
                        "label": "Contact Email",
                        "required": False,
                        "dataTestId": "emergency-email-input",
                    },
                    {
                        "fieldId": "agreeTerms",
                        "type": "checkbox",
                        "label": "I agree to the terms",
                        "required": True,
                        "dataTestId": "terms-checkbox",
                        "validation": {"message": "You must accept the terms"},
                    },
                ],
            },
        ],
    }


def shaped_payload(section_count: int, field_count: int = 2) -> Dict[str, Any]:
    """Generated form with ``section_count`` sections of ``field_count`` text fields."""
    return {
        "sections": [
            {
                "title": f"Section {s + 1}",
                "fields": [
                    {
                        "fieldId": f"s{s + 1}f{f + 1}",
                        "type": "text",
                        "required": True,
                        "dataTestId": f"s{s + 1}f{f + 1}-input",
                    }
                    for f in range(field_count)
                ],
            }
            for s in range(section_count)
        ],
    }


def valid_value(field: Field, today: date = TODAY) -> Any:
    """A schema-conformant value chosen from the field's type and role."""
    if field.field_type == FieldType.CHECKBOX:
        return True
    if isinstance(field, ChoiceField):
        return next(o.value for o in field.options if o.value)
    if field.field_type == FieldType.EMAIL:
        return "test@example.com"
    if field.field_type == FieldType.TEL:
        return "1234567890"
    if field.field_type == FieldType.DATE:
        if field.role == FieldRole.DATE_OF_BIRTH:
            return (today - relativedelta(years=18)).isoformat()
        return today.isoformat()
    if field.field_type == FieldType.TEXTAREA:
        return "This is a test description for the field."
    if field.rules.pattern == "^[0-9]{9}$":
        return "123456789"
    return "Test Value"


def fill_section(session: FormSession, section: Section, today: date = TODAY) -> Dict[str, Any]:
    """Enter a valid value for every field of ``section``; returns what was entered."""
    entered = {}
    for field in section.fields:
        value = valid_value(field, today)
        session.set_value(field.field_id, value)
        entered[field.field_id] = value
    return entered


class FakeFormApi:
    """In-memory form API served through httpx.MockTransport.

    ``GET /api/form`` answers with the registration form by default, or a
    generated form when ``sectionCount`` is given. ``POST /api/form/submit``
    records the payload and acknowledges it.
    """

    def __init__(self, payload: Optional[Dict[str, Any]] = None, envelope: str = "sections"):
        self.payload = payload or registration_payload()
        self.envelope = envelope
        self.schema_requests: List[Dict[str, str]] = []
        self.submissions: List[Dict[str, Any]] = []
        self.schema_status = 200
        self.submit_status = 201

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/form" and request.method == "GET":
            query = dict(request.url.params)
            self.schema_requests.append(query)
            if self.schema_status != 200:
                return httpx.Response(self.schema_status, json={"error": "unavailable"})
            return httpx.Response(200, json=self._schema_body(query))
        if request.url.path == "/api/form/submit" and request.method == "POST":
            self.submissions.append(json.loads(request.content))
            if self.submit_status >= 400:
                return httpx.Response(self.submit_status, json={"error": "rejected"})
            return httpx.Response(
                self.submit_status, json={"submissionId": f"sub_{len(self.submissions)}"}
            )
        return httpx.Response(404)

    def _schema_body(self, query: Dict[str, str]) -> Dict[str, Any]:
        params = SchemaParams.from_query(query)
        if params.section_count is not None:
            document = shaped_payload(params.section_count, params.field_count or 2)
        else:
            document = self.payload
        if self.envelope == "form":
            return {"form": document}
        return document

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def payload() -> Dict[str, Any]:
    return registration_payload()


@pytest.fixture
def schema(payload) -> FormSchema:
    return FormSchema.from_payload(payload)


@pytest.fixture
def validator() -> FieldValidator:
    return FieldValidator(today=TODAY)


@pytest.fixture
def api() -> FakeFormApi:
    return FakeFormApi()


@pytest.fixture
def session(api, validator) -> FormSession:
    client = api.client()
    loader = SchemaLoader(client, SchemaCache())
    coordinator = SubmissionCoordinator(HttpSubmissionTransport(client), validator=validator)
    return FormSession(loader, coordinator=coordinator, validator=validator, http_client=client)
