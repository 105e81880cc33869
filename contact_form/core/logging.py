import logging
import re
import sys
from contextvars import ContextVar
from typing import Dict

from contact_form.core.config import settings

EMPTY_REQUEST_CONTEXT = {"request_id": "-", "ip": "-", "ua": "-"}

request_context: ContextVar[Dict[str, str]] = ContextVar(
    "request_context", default=EMPTY_REQUEST_CONTEXT
)

SENSITIVE_KEYS = ("token", "secret", "password", "key")

# key=value or key: value, where the key contains one of SENSITIVE_KEYS
_SENSITIVE_PAIR = re.compile(
    r"(?P<key>[\w-]*(?:" + "|".join(SENSITIVE_KEYS) + r")[\w-]*)(?P<sep>\s*[=:]\s*)(?P<quote>['\"]?)(?P<value>[^\s,'\"}]*)",
    re.IGNORECASE,
)


def mask_value(value: str) -> str:
    """Mask a secret, keeping the first and last two characters when long enough."""
    if not value:
        return "(empty)"
    if len(value) <= 4:
        return "****"
    return f"{value[:2]}****{value[-2:]}"


class RequestContextFilter(logging.Filter):
    """Attach request id, client ip and user agent to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = request_context.get()
        record.request_id = context.get("request_id", "-")
        record.ip = context.get("ip", "-")
        record.ua = context.get("ua", "-")
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask tokens, secrets and passwords that end up in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SENSITIVE_PAIR.sub(
            lambda m: f"{m.group('key')}{m.group('sep')}{m.group('quote')}{mask_value(m.group('value'))}",
            message,
        )
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging() -> None:
    """Configure application logging."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s %(ip)s] %(message)s"
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
