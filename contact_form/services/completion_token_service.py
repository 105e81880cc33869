"""Signed, short-lived tokens that gate the completion page.

Token format: ``<timestamp_ms>.<hex hmac-sha256(timestamp_ms, secret)>``.
"""

import hashlib
import hmac
import logging
import time
from typing import Callable

from contact_form.core.config import Settings, settings
from contact_form.core.errors import ConfigurationError
from contact_form.utils.constants import COMPLETION_GUARD_SESSION, COMPLETION_GUARD_TOKEN

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 10


def _now_millis() -> int:
    return int(time.time() * 1000)


class CompletionTokenGuard:
    """Issues and verifies completion tokens."""

    def __init__(self, secret: str, clock: Callable[[], int] = _now_millis):
        self._secret = secret.encode()
        self._clock = clock

    def _sign(self, timestamp: str) -> str:
        return hmac.new(self._secret, timestamp.encode(), hashlib.sha256).hexdigest()

    def issue(self) -> str:
        """Sign the current time in milliseconds."""
        timestamp = str(self._clock())
        return f"{timestamp}.{self._sign(timestamp)}"

    def verify(self, token: str, max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS) -> bool:
        """Check the structure, signature and age of a token.

        Tokens from the future are rejected as well as expired ones.

        Args:
            token: Token as produced by ``issue``
            max_age_seconds: Maximum accepted age

        Returns:
            True if the token is authentic and fresh
        """
        if not token:
            return False

        parts = token.split(".")
        if len(parts) != 2:
            return False

        timestamp, signature = parts
        if not (timestamp.isascii() and timestamp.isdigit()):
            return False

        if not hmac.compare_digest(signature.encode(), self._sign(timestamp).encode()):
            logger.warning("Completion token signature mismatch")
            return False

        age = self._clock() - int(timestamp)
        return 0 <= age <= max_age_seconds * 1000


def resolve_completion_guard(config: Settings) -> str:
    """Validate the ``COMPLETION_GUARD`` selector.

    Raises:
        ConfigurationError: If the guard is neither "session" nor "token"
    """
    guards = (COMPLETION_GUARD_SESSION, COMPLETION_GUARD_TOKEN)
    if config.COMPLETION_GUARD not in guards:
        raise ConfigurationError(
            f"Unsupported completion guard: {config.COMPLETION_GUARD}. Supported: {', '.join(guards)}"
        )
    return config.COMPLETION_GUARD


completion_token_guard = CompletionTokenGuard(settings.SECRET_KEY)
completion_guard = resolve_completion_guard(settings)
