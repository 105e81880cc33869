"""Per-request session lifecycle.

Builds the configured session store, starts it, exposes it to handlers as
``request.state.session`` and persists it once the handler has responded.
"""

import logging
from typing import Type

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from contact_form.core.config import Settings
from contact_form.services.session_service import BaseSessionStore

logger = logging.getLogger(__name__)


class SessionLifecycleMiddleware(BaseHTTPMiddleware):
    """Opens and commits the visitor session around each request."""

    def __init__(self, app, store_class: Type[BaseSessionStore], config: Settings):
        super().__init__(app)
        self.store_class = store_class
        self.config = config

    async def dispatch(self, request: Request, call_next):
        session = self.store_class(request, self.config)
        session.start()
        request.state.session = session

        response = await call_next(request)

        session.save()
        session.write_cookie(response)
        return response


def get_session(request: Request) -> BaseSessionStore:
    """FastAPI dependency returning the session opened by the middleware."""
    return request.state.session
