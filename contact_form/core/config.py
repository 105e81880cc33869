"""Configuration settings for the contact form service.

This module manages environment variables and application settings.
"""
import logging
import os
from dotenv import load_dotenv

from contact_form.core.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

DEVELOP_SECRET_KEY = "contact_form_secret"

CATEGORY_LABELS = {
    "product": "About our products",
    "service": "About our services",
    "pricing": "About pricing",
    "technical": "Technical support",
    "other": "Other",
}


def _getenv(key: str, default=None):
    """Read an environment variable, treating an empty value as unset."""
    value = os.getenv(key, "")
    return value if value != "" else default


def _getenv_number(key: str, default, cast):
    """Read a numeric environment variable.

    Raises:
        ConfigurationError: If the value cannot be converted
    """
    value = _getenv(key, default)
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from e


class Settings:
    """Application settings.

    Attributes:
        PROJECT_NAME: Name of the project
        DEBUG: Debug mode flag
        APP_ENV: Environment name, "develop" enables development defaults
        SECRET_KEY: Key for signing session cookies and completion tokens
        RECAPTCHA_TYPE: Bot verification variant (v3, v2-checkbox, v2-invisible, enterprise)
        SESSION_HANDLER: Session backend (cookie, dynamodb)
        COMPLETION_GUARD: How the completion page is guarded (session, token)
    """
    def __init__(self):
        self.PROJECT_NAME = "Contact Form"
        self.DEBUG = str(_getenv("APP_DEBUG", "false")).lower() == "true"
        self.APP_ENV = _getenv("APP_ENV", "develop")
        self.IS_DEVELOP = self.APP_ENV == "develop"

        self.SECRET_KEY = _getenv("SECRET_KEY")
        if not self.SECRET_KEY:
            if not self.IS_DEVELOP:
                raise ConfigurationError("SECRET_KEY environment variable is not set")
            logger.warning("SECRET_KEY is not set, using the development key")
            self.SECRET_KEY = DEVELOP_SECRET_KEY

        # SMTP Settings
        self.SMTP_HOST = _getenv("SMTP_HOST", "email-smtp.ap-northeast-1.amazonaws.com")
        self.SMTP_PORT = _getenv_number("SMTP_PORT", 587, int)
        self.SMTP_USER = _getenv("SES_SMTP_USER", "")
        self.SMTP_PASSWORD = _getenv("SES_SMTP_PASS", "")

        # Email Settings
        self.EMAIL_FROM = _getenv("EMAIL_FROM", "")
        self.EMAIL_FROM_NAME = _getenv("EMAIL_FROM_NAME", "")
        self.EMAIL_ADMIN = _getenv("EMAIL_ADMIN", "")
        self.MAIL_SUBJECT_ADMIN = _getenv("MAIL_SUBJECT_ADMIN", "[Contact] New inquiry received")
        self.MAIL_SUBJECT_USER = _getenv("MAIL_SUBJECT_USER", "[Auto-reply] Thank you for contacting us")

        # reCAPTCHA Settings
        self.RECAPTCHA_SITE_KEY = _getenv("RECAPTCHA_SITE_KEY", "")
        self.RECAPTCHA_SECRET_KEY = _getenv("RECAPTCHA_SECRET_KEY", "")
        self.RECAPTCHA_TYPE = _getenv("RECAPTCHA_TYPE", "v3")
        self.RECAPTCHA_PROJECT_ID = _getenv("RECAPTCHA_PROJECT_ID", "")
        self.RECAPTCHA_API_KEY = _getenv("RECAPTCHA_API_KEY", "")
        self.RECAPTCHA_SCORE_THRESHOLD = _getenv_number("RECAPTCHA_SCORE_THRESHOLD", 0.5, float)

        # Session Settings
        self.SESSION_HANDLER = _getenv("SESSION_HANDLER", "cookie")
        self.SESSION_DYNAMODB_TABLE = _getenv("SESSION_DYNAMODB_TABLE", "contact-form-sessions")
        self.SESSION_COOKIE_NAME = _getenv("SESSION_COOKIE_NAME", "CONTACTSESSID")
        self.SESSION_LIFETIME = _getenv_number("SESSION_LIFETIME", 7200, int)

        # Completion page guard
        self.COMPLETION_GUARD = _getenv("COMPLETION_GUARD", "session")
        self.COMPLETION_TOKEN_MAX_AGE = _getenv_number("COMPLETION_TOKEN_MAX_AGE", 10, int)

        # AWS SETTINGS
        self.AWS_REGION = _getenv("AWS_REGION")


settings = Settings()
