import os
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates

from contact_form.core.config import CATEGORY_LABELS, settings

template_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")
templates = Jinja2Templates(directory=template_dir)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


def render(
    request: Request,
    template_name: str,
    context: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
):
    """Render an HTML page with the values every template expects.

    Adds the visitor's CSRF token, the category labels and the reCAPTCHA
    widget settings, and marks the response as uncacheable.
    """
    page_context = {
        **(context or {}),
        "csrf_token": getattr(request.state, "csrf_token", ""),
        "category_labels": CATEGORY_LABELS,
        "recaptcha_type": settings.RECAPTCHA_TYPE,
        "recaptcha_site_key": settings.RECAPTCHA_SITE_KEY,
    }
    return templates.TemplateResponse(
        request,
        template_name,
        page_context,
        status_code=status_code,
        headers=NO_CACHE_HEADERS,
    )
