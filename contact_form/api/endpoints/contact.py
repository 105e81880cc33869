"""Contact form endpoints.

This module contains the routes of the three-step contact form:

    input -> confirm -> execute (send) -> complete

Anti-abuse checks run on confirm (bot verification, then CSRF, then field
validation) and again on execute (CSRF). Recoverable failures stash the
visitor's input in the session and redirect back to the input page.
"""

import logging
from typing import Dict
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from contact_form.core.errors import BotVerificationError, CsrfError, ValidationError
from contact_form.services.bot_verification_service import bot_verifier
from contact_form.services.completion_token_service import (
    completion_guard,
    completion_token_guard,
)
from contact_form.services.csrf_service import csrf_guard
from contact_form.services.mail_service import mail_service
from contact_form.services.session_service import BaseSessionStore
from contact_form.services.validation_service import ContactValidator
from contact_form.core.config import settings
from contact_form.utils.constants import (
    BOT_TOKEN_FIELD,
    COMPLETE_PATH,
    COMPLETION_GUARD_TOKEN,
    CONTACT_DATA_KEY,
    CONTACT_ERRORS_KEY,
    CONTACT_INPUT_KEY,
    CONTACT_SENT_KEY,
    FLASH_ERROR,
    FORM_FIELDS,
    INPUT_PATH,
)
from contact_form.utils.rendering import render
from contact_form.utils.session_middleware import get_session

logger = logging.getLogger(__name__)

router = APIRouter()

MSG_BOT_TOKEN_MISSING = "reCAPTCHA token not found."
MSG_BOT_FAILED = "reCAPTCHA verification failed. Please try again."
MSG_BOT_ERROR = "An error occurred during reCAPTCHA verification."
MSG_CSRF_FAILED = "CSRF validation failed. Please try again."


def redirect_to(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


async def read_form(request: Request) -> Dict[str, str]:
    """Return the posted text fields, or an empty dict for non-POST requests."""
    if request.method != "POST":
        return {}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def pick_fields(data: Dict[str, str]) -> Dict[str, str]:
    return {field: data[field] for field in FORM_FIELDS if field in data}


def back_to_input(session: BaseSessionStore, form: Dict[str, str], message: str) -> RedirectResponse:
    """Flash an error, keep the visitor's input and return to the input page."""
    session.get_flash().add(FLASH_ERROR, message)
    session.set(CONTACT_INPUT_KEY, pick_fields(form))
    session.delete(CONTACT_DATA_KEY)
    return redirect_to(INPUT_PATH)


def validate_submission(form: Dict[str, str]) -> Dict[str, str]:
    """Run the contact rules and return the clean fields.

    Raises:
        ValidationError: If any field fails its rules
    """
    result = ContactValidator.validate(form)
    if not result.is_valid:
        raise ValidationError(result.errors)
    return result.clean


@router.api_route("", methods=["GET", "POST"], summary="Show the contact form")
async def contact_input(request: Request, session: BaseSessionStore = Depends(get_session)):
    """
    Render the input page.

    Stashed input, stashed errors and previously confirmed data are read once
    and cleared. Posted fields (the confirm page's back button) take priority.
    """
    posted = pick_fields(await read_form(request))
    stashed_input = session.get(CONTACT_INPUT_KEY)
    confirmed = session.get(CONTACT_DATA_KEY)
    errors = session.get(CONTACT_ERRORS_KEY) or {}

    for key in (CONTACT_INPUT_KEY, CONTACT_ERRORS_KEY, CONTACT_DATA_KEY):
        if session.has(key):
            session.delete(key)

    data = posted or stashed_input or confirmed or {}

    logger.info("input complete")

    return render(
        request,
        "contact/input.html",
        {
            "data": data,
            "errors": errors,
            "flash_errors": session.get_flash().get(FLASH_ERROR),
        },
    )


@router.get("/confirm", summary="Confirm is POST only")
async def contact_confirm_redirect():
    return redirect_to(INPUT_PATH)


@router.post("/confirm", summary="Validate the form and show the confirmation page")
async def contact_confirm(request: Request, session: BaseSessionStore = Depends(get_session)):
    """
    Verify the submission and render the confirmation page.

    Order of checks:
    - bot verification token
    - CSRF token
    - field validation

    Any failure redirects to the input page with the visitor's input kept.
    """
    logger.info("confirm start")
    form = await read_form(request)

    bot_token = form.get(BOT_TOKEN_FIELD)
    if not bot_token:
        logger.error("reCAPTCHA token not found")
        return back_to_input(session, form, MSG_BOT_TOKEN_MISSING)

    try:
        verification = await bot_verifier.verify(bot_token)
    except BotVerificationError as e:
        logger.error(f"reCAPTCHA verification error: {str(e)}")
        return back_to_input(session, form, MSG_BOT_ERROR)

    if not verification.success:
        logger.warning(
            f"reCAPTCHA verification failed: score={verification.score} errors={verification.errors}"
        )
        return back_to_input(session, form, MSG_BOT_FAILED)

    try:
        await csrf_guard.validate(request)
    except CsrfError as e:
        logger.error(f"CSRF validation error: {str(e)}")
        return back_to_input(session, form, MSG_CSRF_FAILED)

    try:
        clean = validate_submission(form)
    except ValidationError as e:
        logger.info(f"validation failed: {sorted(e.errors)}")
        session.set_values(
            {
                CONTACT_INPUT_KEY: pick_fields(form),
                CONTACT_ERRORS_KEY: e.errors,
            }
        )
        session.delete(CONTACT_DATA_KEY)
        return redirect_to(INPUT_PATH)

    session.set(CONTACT_DATA_KEY, clean)
    session.delete(CONTACT_ERRORS_KEY)
    session.delete(CONTACT_INPUT_KEY)

    logger.info("confirm complete")

    return render(request, "contact/confirm.html", {"data": clean})


@router.post("/execute", summary="Send the inquiry")
@router.post("/complete", summary="Send the inquiry")
async def contact_execute(request: Request, session: BaseSessionStore = Depends(get_session)):
    """
    Send the confirmed inquiry and redirect to the completion page.

    Sends the admin notification, then the auto-reply. A mail failure is not
    handled here; it reaches the application error handler.
    """
    logger.info("execute start")

    try:
        await csrf_guard.validate(request)
    except CsrfError as e:
        logger.error(f"CSRF validation error: {str(e)}")
        session.get_flash().add(FLASH_ERROR, MSG_CSRF_FAILED)
        return redirect_to(INPUT_PATH)

    data = session.get(CONTACT_DATA_KEY)
    if not data:
        logger.warning("execute called without confirmed contact data")
        return redirect_to(INPUT_PATH)

    await mail_service.send_admin(data)
    await mail_service.send_user(data)

    session.delete(CONTACT_DATA_KEY)

    logger.info("execute complete")

    if completion_guard == COMPLETION_GUARD_TOKEN:
        token = completion_token_guard.issue()
        return redirect_to(f"{COMPLETE_PATH}?token={quote(token)}")

    session.set(CONTACT_SENT_KEY, True)
    return redirect_to(COMPLETE_PATH)


@router.get("/complete", summary="Show the completion page")
async def contact_complete(request: Request, session: BaseSessionStore = Depends(get_session)):
    """
    Render the completion page once per successful send.

    Without proof of a send (session flag or fresh token) the visitor is sent
    back to the input page.
    """
    logger.info("complete start")

    if completion_guard == COMPLETION_GUARD_TOKEN:
        token = request.query_params.get("token")
        if not token or not completion_token_guard.verify(token, settings.COMPLETION_TOKEN_MAX_AGE):
            logger.warning(f"invalid or expired completion token: token={token or ''}")
            return redirect_to(INPUT_PATH)
        return render(request, "contact/complete.html")

    if not session.has(CONTACT_SENT_KEY):
        logger.warning("complete requested without a send")
        return redirect_to(INPUT_PATH)

    session.regenerate_id(delete_old=True)
    session.delete(CONTACT_SENT_KEY)

    logger.info("complete complete")

    return render(request, "contact/complete.html")
