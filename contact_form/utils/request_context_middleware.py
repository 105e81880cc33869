"""Request context and access logging middleware.

Binds the request id, client ip and user agent to the logging context for
the duration of a request and logs one line per request with its outcome.
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from contact_form.core.logging import request_context

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware that tags log records with per-request metadata."""

    async def dispatch(self, request: Request, call_next):
        """Process the request inside a bound logging context.

        Args:
            request: The incoming HTTP request
            call_next: The next middleware or endpoint in the chain

        Returns:
            HTTP response
        """
        start_time = time.time()
        token = request_context.set(
            {
                "request_id": self._get_request_id(request),
                "ip": self._get_client_ip(request),
                "ua": request.headers.get("user-agent", ""),
            }
        )

        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {round(process_time, 4)}s"
            )
            return response
        except Exception as e:
            logger.exception(f"Unhandled Exception: {e}")
            raise
        finally:
            request_context.reset(token)

    def _get_request_id(self, request: Request) -> str:
        # API Gateway / Lambda forward the invocation id in x-amzn-requestid
        return (
            request.headers.get("x-amzn-requestid")
            or request.headers.get("x-request-id")
            or uuid.uuid4().hex
        )

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request.

        Args:
            request: The HTTP request

        Returns:
            Client IP address
        """
        # Check for forwarded headers first (for load balancers/proxies)
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        # Fallback to direct client address
        if request.client:
            return request.client.host

        return "unknown"
