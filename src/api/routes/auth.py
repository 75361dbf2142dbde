from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Form, Query, Request, status
from starlette.responses import RedirectResponse, Response

from src.api.cookies import clear_session_cookie, set_session_cookie
from src.api.views import render
from src.core.auth import Identity, require_identity
from src.core.config import settings
from src.core.guard import LOGIN_PATH, ROOT_PATH, UNAUTHORIZED_ERROR
from src.core.security.dependencies import get_security_cipher
from src.core.session import IdentityProviderClient, IdentityProviderError, InvalidCredentialsError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _render_login(
    request: Request,
    *,
    unauthorized: bool = False,
    email: str = "",
    error_message: str | None = None,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    return render(
        request,
        "login.html",
        {"unauthorized": unauthorized, "email": email, "error_message": error_message},
        status_code=status_code,
    )


@router.get(LOGIN_PATH)
async def login_page(request: Request, error: str | None = Query(default=None)) -> Response:
    return _render_login(request, unauthorized=error == UNAUTHORIZED_ERROR)


@router.post(LOGIN_PATH)
async def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
) -> Response:
    provider = IdentityProviderClient()
    try:
        tokens = await asyncio.wait_for(
            asyncio.to_thread(provider.sign_in_with_password, email, password),
            timeout=settings.identity_provider_timeout_seconds,
        )
    except InvalidCredentialsError as exc:
        return _render_login(
            request,
            email=email,
            error_message=str(exc),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    except (IdentityProviderError, asyncio.TimeoutError):
        logger.exception("Sign-in request failed")
        return _render_login(
            request,
            email=email,
            error_message="An unexpected error occurred",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    # The guard decides on the next request whether this identity may stay.
    response = RedirectResponse(ROOT_PATH, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, tokens, get_security_cipher())
    return response


@router.post("/logout")
async def logout(identity: Identity = Depends(require_identity)) -> Response:
    provider = IdentityProviderClient()
    try:
        await asyncio.wait_for(
            asyncio.to_thread(provider.sign_out, identity.raw_token),
            timeout=settings.identity_provider_timeout_seconds,
        )
    except (IdentityProviderError, asyncio.TimeoutError) as exc:
        logger.warning("Provider sign-out failed for subject=%s: %s", identity.subject, exc)

    response = RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response
