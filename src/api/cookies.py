from __future__ import annotations

from starlette.responses import Response

from src.core.config import settings
from src.core.security.crypto import SecurityCipher
from src.core.session import SessionTokens


def set_session_cookie(response: Response, tokens: SessionTokens, cipher: SecurityCipher) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=tokens.seal(cipher),
        max_age=settings.session_cookie_max_age_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def sets_session_cookie(response: Response) -> bool:
    prefix = f"{settings.session_cookie_name}=".encode("latin-1")
    for key, value in response.raw_headers:
        if key.lower() == b"set-cookie" and value.startswith(prefix):
            return True
    return False
