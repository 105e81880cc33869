"""Declarative form validation.

Each field owns an ordered list of rules. Rules run in order and the first
failing rule records its message; later rules for that field are skipped.
Only a field with no failing rule is copied, trimmed, into the clean map.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, NamedTuple

from email_validator import EmailNotValidError, validate_email

from contact_form.core.config import CATEGORY_LABELS
from contact_form.models.contact import ValidationResult

logger = logging.getLogger(__name__)


class Rule(NamedTuple):
    """A predicate over (trimmed value, trimmed form) and its failure message."""

    check: Callable[[str, Mapping[str, str]], bool]
    message: str


def _trim(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def not_empty() -> Callable[[str, Mapping[str, str]], bool]:
    return lambda value, data: value != ""


def length(minimum: int, maximum: int) -> Callable[[str, Mapping[str, str]], bool]:
    return lambda value, data: minimum <= len(value) <= maximum


def email() -> Callable[[str, Mapping[str, str]], bool]:
    def check(value: str, data: Mapping[str, str]) -> bool:
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            return False
        return True

    return check


def equals_field(other: str) -> Callable[[str, Mapping[str, str]], bool]:
    return lambda value, data: value == data.get(other, "")


def one_of(choices) -> Callable[[str, Mapping[str, str]], bool]:
    return lambda value, data: value in choices


class Validator:
    """Base validator; subclasses declare ``rules``."""

    @classmethod
    def rules(cls) -> Dict[str, List[Rule]]:
        cls_name = cls.__name__
        raise NotImplementedError(f"{cls_name}.rules not implemented")

    @classmethod
    def validate(cls, raw_fields: Mapping[str, Any]) -> ValidationResult:
        """Validate raw form fields.

        Args:
            raw_fields: Submitted form values, typically the parsed request body

        Returns:
            ValidationResult holding the error map and the clean map. A field
            appears in exactly one of the two.
        """
        trimmed = {field: _trim(raw_fields.get(field)) for field in cls.rules()}
        errors: Dict[str, str] = {}
        clean: Dict[str, str] = {}

        for field, rules in cls.rules().items():
            value = trimmed[field]
            for rule in rules:
                if not rule.check(value, trimmed):
                    errors[field] = rule.message
                    break
            else:
                clean[field] = value

        if errors:
            logger.debug(f"Validation failed for fields: {sorted(errors)}")

        return ValidationResult(errors=errors, clean=clean)


class ContactValidator(Validator):
    """Rules for the contact form."""

    @classmethod
    def rules(cls) -> Dict[str, List[Rule]]:
        return {
            "name": [
                Rule(not_empty(), "Please enter your name"),
                Rule(length(1, 50), "Name must be 50 characters or fewer"),
            ],
            "email": [
                Rule(not_empty(), "Please enter your email address"),
                Rule(email(), "The email address format is invalid"),
            ],
            "email_cmp": [
                Rule(not_empty(), "Please enter your email address again for confirmation"),
                Rule(equals_field("email"), "Email addresses do not match"),
            ],
            "category": [
                Rule(not_empty(), "Please select an inquiry category"),
                Rule(one_of(CATEGORY_LABELS), "Please select a valid inquiry category"),
            ],
            "body": [
                Rule(not_empty(), "Please enter your inquiry"),
                Rule(length(1, 1000), "Inquiry must be 1000 characters or fewer"),
            ],
        }
