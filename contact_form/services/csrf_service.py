"""Double-submit cookie CSRF protection.

The token is issued once per visitor by ``CsrfCookieMiddleware`` and embedded
in every rendered form. ``CsrfGuard`` only compares the two copies.
"""

import logging
import secrets

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from contact_form.core.errors import CsrfError
from contact_form.core.logging import mask_value

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_FIELD_NAME = "csrf_token"


def generate_csrf_token() -> str:
    """Generate a random 32-byte token, hex encoded."""
    return secrets.token_hex(32)


class CsrfGuard:
    """Compares the form token with the cookie token in constant time."""

    async def validate(self, request: Request) -> None:
        """Validate the CSRF token of a form submission.

        Args:
            request: Incoming request carrying the cookie and the form body

        Raises:
            CsrfError: If either token is missing or they differ
        """
        form = await request.form()
        body_token = form.get(CSRF_FIELD_NAME)
        if not isinstance(body_token, str):
            body_token = ""
        cookie_token = request.cookies.get(CSRF_COOKIE_NAME) or ""

        if (
            not body_token
            or not cookie_token
            or not secrets.compare_digest(cookie_token.encode(), body_token.encode())
        ):
            logger.error(
                f"CSRF validation failed: body_token={mask_value(body_token)} cookie_token={mask_value(cookie_token)}"
            )
            raise CsrfError("CSRF validation failed")


class CsrfCookieMiddleware(BaseHTTPMiddleware):
    """Issues the CSRF cookie for visitors that do not carry one yet.

    The token is exposed to handlers and templates as ``request.state.csrf_token``.
    """

    async def dispatch(self, request: Request, call_next):
        existing = request.cookies.get(CSRF_COOKIE_NAME)
        request.state.csrf_token = existing or generate_csrf_token()

        response = await call_next(request)

        if not existing:
            response.set_cookie(
                CSRF_COOKIE_NAME,
                request.state.csrf_token,
                path="/",
                httponly=True,
                samesite="lax",
            )
        return response


csrf_guard = CsrfGuard()
