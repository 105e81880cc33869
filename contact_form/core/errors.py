"""Exception types raised across the contact form flow."""

from typing import Dict, Optional


class ContactFormError(Exception):
    """Base exception for the contact form service."""

    pass


class ValidationError(ContactFormError):
    """Field-level validation failure, recoverable by re-entering the form."""

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message or "Validation failed")
        self.errors = errors


class CsrfError(ContactFormError):
    """The submitted CSRF token is missing or does not match the cookie."""

    pass


class BotVerificationError(ContactFormError):
    """The bot verification upstream could not be reached or answered garbage.

    A negative verification result is not an error; it is reported through
    ``VerificationResult.success``.
    """

    pass


class MailDispatchError(ContactFormError):
    """An email could not be rendered or delivered."""

    pass


class ConfigurationError(ContactFormError):
    """An unsupported configuration value was detected at startup."""

    pass
