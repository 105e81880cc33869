from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
import logging
import traceback

from contact_form.api.endpoints import contact
from contact_form.core.config import settings
from contact_form.core.errors import MailDispatchError
from contact_form.core.logging import setup_logging
from contact_form.services.csrf_service import CsrfCookieMiddleware
from contact_form.services.session_service import CookieSessionStore, get_session_store_class
from contact_form.utils.rendering import render
from contact_form.utils.request_context_middleware import RequestContextMiddleware
from contact_form.utils.session_middleware import SessionLifecycleMiddleware

setup_logging()

logger = logging.getLogger(__name__)

# Fails at import when SESSION_HANDLER is unsupported
session_store_class = get_session_store_class(settings)

# APP_DEBUG stays out of Starlette so unhandled errors still render error/500.html
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Three-step contact form: input, confirm, complete",
    version="0.1.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# Added innermost first: the request context wraps everything, and Starlette's
# SessionMiddleware must wrap the session lifecycle for cookie sessions.
app.add_middleware(CsrfCookieMiddleware)
app.add_middleware(SessionLifecycleMiddleware, store_class=session_store_class, config=settings)
if session_store_class is CookieSessionStore:
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_LIFETIME,
        same_site="lax",
        https_only=not settings.IS_DEVELOP,
    )
app.add_middleware(RequestContextMiddleware)

app.include_router(contact.router, prefix="/contact", tags=["contact"])


def render_error(request: Request, exc: Exception, status_code: int):
    """Log the failure and render the matching error page."""
    template = "error/404.html" if status_code == status.HTTP_404_NOT_FOUND else "error/500.html"

    if status_code >= 500:
        logger.error(f"{status_code}: {type(exc).__name__}: {str(exc)}")
        if settings.DEBUG:
            logger.error(traceback.format_exc())
    else:
        logger.warning(f"{status_code}: {request.url.path}")

    return render(
        request,
        template,
        {"exception": str(exc) if settings.DEBUG else None},
        status_code=status_code,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return render_error(request, exc, exc.status_code)


@app.exception_handler(MailDispatchError)
async def mail_dispatch_exception_handler(request: Request, exc: MailDispatchError):
    return render_error(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    return render_error(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "contact_form.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
