import pytest

from contact_form.services.validation_service import ContactValidator
from contact_form.tests.constants.contact import ContactTestConstants


def valid_fields(**overrides):
    return {**ContactTestConstants.MOCK_VALID_FORM.value, **overrides}


def test_valid_submission():
    result = ContactValidator.validate(valid_fields())

    assert result.is_valid
    assert result.errors == {}
    assert result.clean == ContactTestConstants.MOCK_VALID_FORM.value


def test_values_are_trimmed():
    result = ContactValidator.validate(ContactTestConstants.MOCK_PADDED_FORM.value)

    assert result.is_valid
    assert result.clean == ContactTestConstants.MOCK_VALID_FORM.value


@pytest.mark.parametrize(
    "field, message",
    [
        ("name", "Please enter your name"),
        ("email", "Please enter your email address"),
        ("email_cmp", "Please enter your email address again for confirmation"),
        ("category", "Please select an inquiry category"),
        ("body", "Please enter your inquiry"),
    ],
)
def test_missing_field_reports_first_rule(field, message):
    """Whitespace-only counts as empty and only the first failing rule is recorded."""
    result = ContactValidator.validate(valid_fields(**{field: "   "}))

    assert not result.is_valid
    assert result.errors[field] == message
    assert field not in result.clean


def test_absent_fields_are_empty():
    result = ContactValidator.validate({})

    assert set(result.errors) == {"name", "email", "email_cmp", "category", "body"}
    assert result.clean == {}


def test_name_length_limit():
    assert ContactValidator.validate(valid_fields(name="a" * 50)).is_valid

    result = ContactValidator.validate(valid_fields(name="a" * 51))
    assert result.errors == {"name": "Name must be 50 characters or fewer"}


def test_body_length_limit():
    assert ContactValidator.validate(valid_fields(body="b" * 1000)).is_valid

    result = ContactValidator.validate(valid_fields(body="b" * 1001))
    assert result.errors == {"body": "Inquiry must be 1000 characters or fewer"}


def test_invalid_email():
    result = ContactValidator.validate(valid_fields(email="not-an-email", email_cmp="not-an-email"))

    assert result.errors == {"email": "The email address format is invalid"}
    # email_cmp only has to match, the format is checked on email
    assert result.clean["email_cmp"] == "not-an-email"


def test_email_mismatch():
    result = ContactValidator.validate(valid_fields(email_cmp="b@x.com"))

    assert result.errors == {"email_cmp": "Email addresses do not match"}
    assert result.clean["email"] == "a@x.com"


def test_email_comparison_uses_trimmed_values():
    result = ContactValidator.validate(valid_fields(email=" a@x.com ", email_cmp="a@x.com"))

    assert result.is_valid


def test_unknown_category():
    result = ContactValidator.validate(valid_fields(category="spam"))

    assert result.errors == {"category": "Please select a valid inquiry category"}


def test_each_field_in_exactly_one_map():
    result = ContactValidator.validate(valid_fields(name="", body="b" * 1001))

    assert set(result.errors) | set(result.clean) == {"name", "email", "email_cmp", "category", "body"}
    assert set(result.errors) & set(result.clean) == set()
