from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette import status
from starlette.responses import RedirectResponse, Response

from src.api.cookies import clear_session_cookie, set_session_cookie, sets_session_cookie
from src.core.auth import Identity
from src.core.config import settings
from src.core.guard import AccessOutcome, evaluate_access, is_guarded
from src.core.security.dependencies import get_security_cipher
from src.core.session import (
    IdentityProviderClient,
    IdentityProviderError,
    SessionResolution,
    Unauthenticated,
    resolve_session,
)

logger = logging.getLogger(__name__)


async def _resolve(request: Request) -> SessionResolution:
    cookie_value = request.cookies.get(settings.session_cookie_name)
    try:
        return await resolve_session(
            cookie_value,
            cipher=get_security_cipher(),
            provider=IdentityProviderClient(),
        )
    except Exception:
        logger.exception("Session resolution failed; treating request as unauthenticated")
        return SessionResolution(
            state=Unauthenticated(reason="resolution error"),
            clear_cookie=bool(cookie_value),
        )


async def _force_logout(identity: Identity | None) -> None:
    if identity is None:
        return
    logger.warning("Forcing logout of non-superadmin subject=%s", identity.subject)
    provider = IdentityProviderClient()
    try:
        await asyncio.wait_for(
            asyncio.to_thread(provider.sign_out, identity.raw_token),
            timeout=settings.identity_provider_timeout_seconds,
        )
    except (IdentityProviderError, asyncio.TimeoutError) as exc:
        logger.warning("Provider sign-out failed for subject=%s: %s", identity.subject, exc)


def _write_back(response: Response, resolution: SessionResolution) -> None:
    if sets_session_cookie(response):
        return
    if resolution.rotated is not None:
        set_session_cookie(response, resolution.rotated, get_security_cipher())
    elif resolution.clear_cookie:
        clear_session_cookie(response)


async def access_guard_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    path = request.url.path
    if not is_guarded(path):
        return await call_next(request)

    resolution = await _resolve(request)
    decision = evaluate_access(path, resolution.state)

    if decision.outcome is AccessOutcome.FORCE_LOGOUT:
        await _force_logout(resolution.identity)
        response: Response = RedirectResponse(decision.location, status_code=status.HTTP_303_SEE_OTHER)
        clear_session_cookie(response)
        return response

    if not decision.allowed:
        response = RedirectResponse(decision.location, status_code=status.HTTP_303_SEE_OTHER)
    else:
        request.state.identity = resolution.identity
        response = await call_next(request)

    _write_back(response, resolution)
    return response
