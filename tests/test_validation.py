"""Unit tests for the field validation engine.

Tests cover:
- Required checks for every field type
- Format checks (email, tel, patterns, length bounds)
- Date parsing and the minimum-age rule for date-of-birth fields
- Choice fields and checkboxes
- Declared vs generic messages
- Section and whole-form aggregation
"""

from datetime import date

import pytest
from dateutil.relativedelta import relativedelta

from formsteps.errors import (
    INVALID_FORMAT_MESSAGE,
    INVALID_OPTION_MESSAGE,
    REQUIRED_MESSAGE,
)
from formsteps.schema import (
    CheckboxField,
    DateField,
    DropdownField,
    EmailField,
    FieldRules,
    Option,
    RadioField,
    TelField,
    TextAreaField,
    TextField,
)
from formsteps.state import FormState
from formsteps.types import FieldErrorCode, FieldRole
from formsteps.validation import FieldValidator, SectionValidationResult

from tests.conftest import TODAY, valid_value


def dob_field(**kwargs):
    return DateField(field_id="dateOfBirth", required=True, role=FieldRole.DATE_OF_BIRTH, **kwargs)


class TestRequiredFields:
    """Test that required fields reject empty values."""

    @pytest.mark.parametrize("field_cls", [TextField, TextAreaField, EmailField, TelField, DateField])
    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_text_like_values(self, validator, field_cls, value):
        """Required text-like fields reject empty and whitespace-only values."""
        result = validator.validate(field_cls(field_id="f", required=True), value)
        assert not result.is_valid
        assert result.error.code == FieldErrorCode.REQUIRED
        assert result.message == REQUIRED_MESSAGE

    def test_declared_message_used(self, validator):
        """A declared validation message replaces the generic one."""
        field = TextField(field_id="f", required=True, rules=FieldRules(message="Name please"))
        assert validator.validate(field, "").message == "Name please"

    def test_generic_message_mentions_required(self, validator):
        result = validator.validate(TextField(field_id="f", required=True), "")
        assert "required" in result.message

    @pytest.mark.parametrize("field_cls", [TextField, EmailField, TelField, DateField])
    def test_optional_empty_is_valid(self, validator, field_cls):
        """Optional fields skip format checks when empty."""
        assert validator.validate(field_cls(field_id="f"), "").is_valid


class TestTextRules:
    """Test length bounds and patterns on text fields."""

    def test_plain_text_valid(self, validator):
        assert validator.validate(TextField(field_id="f", required=True), "Test Value").is_valid

    def test_too_short(self, validator):
        field = TextField(field_id="f", rules=FieldRules(min_length=2, max_length=50))
        result = validator.validate(field, "J")
        assert result.error.code == FieldErrorCode.TOO_SHORT
        assert result.message == "Must be at least 2 characters"

    def test_too_long(self, validator):
        field = TextField(field_id="f", rules=FieldRules(min_length=2, max_length=50))
        result = validator.validate(field, "x" * 51)
        assert result.error.code == FieldErrorCode.TOO_LONG

    def test_length_message_override(self, validator):
        rules = FieldRules(min_length=2, max_length=50, message="Between 2 and 50 characters")
        result = validator.validate(TextField(field_id="f", rules=rules), "J")
        assert result.message == "Between 2 and 50 characters"

    def test_within_bounds(self, validator):
        field = TextField(field_id="f", rules=FieldRules(min_length=2, max_length=50))
        assert validator.validate(field, "Jo").is_valid
        assert validator.validate(field, "x" * 50).is_valid

    def test_pattern(self, validator):
        field = TextField(field_id="studentId", rules=FieldRules(pattern="^[0-9]{9}$"))
        assert validator.validate(field, "123456789").is_valid
        result = validator.validate(field, "12345")
        assert result.error.code == FieldErrorCode.INVALID_FORMAT
        assert result.message == INVALID_FORMAT_MESSAGE

    def test_textarea_max_length(self, validator):
        field = TextAreaField(field_id="bio", rules=FieldRules(max_length=10))
        assert not validator.validate(field, "a much longer description").is_valid


class TestEmail:
    """Test email format checks."""

    @pytest.mark.parametrize("value", ["test@example.com", "first.last+tag@uni.edu.au"])
    def test_valid_addresses(self, validator, value):
        assert validator.validate(EmailField(field_id="email", required=True), value).is_valid

    @pytest.mark.parametrize("value", ["not-an-email", "a@b", "@example.com", "a b@example.com", "a@b.co\n"])
    def test_invalid_addresses(self, validator, value):
        result = validator.validate(EmailField(field_id="email"), value)
        assert result.error.code == FieldErrorCode.INVALID_FORMAT

    def test_invalid_uses_declared_message(self, validator):
        field = EmailField(field_id="email", rules=FieldRules(message="Please enter a valid email address"))
        assert validator.validate(field, "nope").message == "Please enter a valid email address"


class TestTel:
    """Test the ten-digit telephone rule."""

    def test_ten_digits(self, validator):
        assert validator.validate(TelField(field_id="phone"), "1234567890").is_valid

    @pytest.mark.parametrize("value", [
        "123456789",
        "12345678901",
        "123-456-7890",
        "abcdefghij",
        "1234567890\n",
        "\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669\u0660",
    ])
    def test_not_ten_digits(self, validator, value):
        """Only ASCII digits count, and a trailing newline is not accepted."""
        result = validator.validate(TelField(field_id="phone"), value)
        assert result.error.code == FieldErrorCode.INVALID_FORMAT


class TestDates:
    """Test date parsing and the minimum-age rule."""

    def test_valid_date(self, validator):
        assert validator.validate(DateField(field_id="startDate"), "2026-09-01").is_valid

    @pytest.mark.parametrize("value", ["2026-13-01", "2026-02-30", "yesterday"])
    def test_unparsable_date(self, validator, value):
        result = validator.validate(DateField(field_id="startDate"), value)
        assert result.error.code == FieldErrorCode.INVALID_FORMAT

    def test_age_ignored_without_role(self, validator):
        """Only fields with the date-of-birth role enforce an age."""
        assert validator.validate(DateField(field_id="birthDate"), TODAY.isoformat()).is_valid

    def test_eighteen_years_accepted(self, validator):
        dob = TODAY - relativedelta(years=18)
        assert validator.validate(dob_field(), dob.isoformat()).is_valid

    def test_exactly_sixteen_accepted(self, validator):
        dob = TODAY - relativedelta(years=16)
        assert validator.validate(dob_field(), dob.isoformat()).is_valid

    def test_one_day_short_of_sixteen_rejected(self, validator):
        dob = TODAY - relativedelta(years=16) + relativedelta(days=1)
        result = validator.validate(dob_field(), dob.isoformat())
        assert result.error.code == FieldErrorCode.BELOW_MINIMUM_AGE
        assert result.message == "You must be at least 16 years old"

    def test_future_birth_date_rejected(self, validator):
        result = validator.validate(dob_field(), "2030-01-01")
        assert result.error.code == FieldErrorCode.BELOW_MINIMUM_AGE

    def test_declared_min_age_overrides_default(self, validator):
        field = dob_field(rules=FieldRules(min_age=21))
        dob = TODAY - relativedelta(years=18)
        result = validator.validate(field, dob.isoformat())
        assert result.message == "You must be at least 21 years old"

    def test_configured_minimum_age(self):
        validator = FieldValidator(minimum_age_years=18, today=TODAY)
        dob = TODAY - relativedelta(years=17)
        assert not validator.validate(dob_field(), dob.isoformat()).is_valid

    def test_leap_day_birthday(self):
        """Age counts whole calendar years for a 29 February birthday."""
        validator = FieldValidator(today=date(2024, 2, 28))
        assert validator.validate(dob_field(), "2008-02-29").is_valid is False
        validator = FieldValidator(today=date(2024, 2, 29))
        assert validator.validate(dob_field(), "2008-02-29").is_valid

    def test_defaults_to_current_date(self):
        validator = FieldValidator()
        assert validator.context().today == date.today()


class TestChoices:
    """Test radio and dropdown fields."""

    OPTIONS = (Option("", "Select"), Option("cs", "Computer Science"), Option("math", "Mathematics"))

    def test_unselected_required_dropdown(self, validator):
        field = DropdownField(field_id="course", required=True, options=self.OPTIONS)
        assert validator.validate(field, "").error.code == FieldErrorCode.REQUIRED

    def test_listed_option_valid(self, validator):
        field = DropdownField(field_id="course", required=True, options=self.OPTIONS)
        assert validator.validate(field, "math").is_valid

    def test_unlisted_option_invalid(self, validator):
        field = RadioField(field_id="year", options=(Option("1", "First"), Option("2", "Second")))
        result = validator.validate(field, "3")
        assert result.error.code == FieldErrorCode.INVALID_VALUE
        assert result.message == INVALID_OPTION_MESSAGE

    def test_required_radio_declared_message(self, validator):
        field = RadioField(
            field_id="year",
            required=True,
            options=(Option("1", "First"),),
            rules=FieldRules(message="Please select your year of study"),
        )
        assert validator.validate(field, None).message == "Please select your year of study"


class TestCheckbox:
    """Test checkbox handling."""

    def test_required_unchecked(self, validator):
        field = CheckboxField(field_id="terms", required=True)
        assert validator.validate(field, False).error.code == FieldErrorCode.REQUIRED

    @pytest.mark.parametrize("value", [True, "true", "on"])
    def test_required_checked(self, validator, value):
        assert validator.validate(CheckboxField(field_id="terms", required=True), value).is_valid

    def test_optional_unchecked(self, validator):
        assert validator.validate(CheckboxField(field_id="newsletter"), False).is_valid


class TestSectionValidation:
    """Test aggregation across a section and the whole form."""

    def test_empty_first_section(self, validator, schema):
        """Every required field of an empty section should be reported missing."""
        result = validator.validate_section(schema.sections[0], FormState(schema))
        assert not result.is_valid
        assert result.missing_fields == ["firstName", "lastName", "email", "phone", "dateOfBirth"]
        assert result.invalid_fields == []

    def test_valid_section(self, validator, schema):
        state = FormState(schema)
        for field in schema.sections[0].fields:
            state.set(field.field_id, valid_value(field))
        assert validator.validate_section(schema.sections[0], state).is_valid

    def test_optional_populated_field_checked(self, validator, schema):
        """A populated optional field must still pass its format check."""
        state = FormState(schema)
        for field in schema.sections[1].fields:
            state.set(field.field_id, valid_value(field))
        state.set("studentId", "12")
        result = validator.validate_section(schema.sections[1], state)
        assert result.invalid_fields == ["studentId"]
        assert result.errors_by_field["studentId"].message == "Student ID must be 9 digits"

    def test_validate_form_orders_errors_by_section(self, validator, schema):
        result = validator.validate_form(schema, FormState(schema))
        ids = [e.field_id for e in result.errors]
        assert ids.index("firstName") < ids.index("course") < ids.index("agreeTerms")
        assert "bio" not in ids

    def test_result_to_dict(self):
        result = SectionValidationResult(is_valid=True, errors=[], missing_fields=[], invalid_fields=[])
        assert result.to_dict() == {
            "isValid": True,
            "errors": [],
            "missingFields": [],
            "invalidFields": [],
        }


class TestValidatorReuse:
    """Test that compiled value schemas are shared between equal fields."""

    def test_equal_rules_share_one_validator(self, validator):
        """Reshaped forms with many same-rule fields do not grow the cache per field."""
        for i in range(20):
            validator.validate(TextField(field_id=f"s{i}f1", required=True), "Test Value")
        validator.validate(TelField(field_id="phone"), "1234567890")
        assert len(validator._validators) == 2

    def test_differing_rules_get_their_own_validator(self, validator):
        short = TextField(field_id="a", rules=FieldRules(max_length=3))
        assert not validator.validate(short, "abcd").is_valid
        assert validator.validate(TextField(field_id="b"), "abcd").is_valid
