from __future__ import annotations

import time
from collections.abc import Callable

import pytest
from cryptography.fernet import Fernet
from jose import jwt

from src.core.config import settings
from src.core.security.crypto import SecurityCipher

JWT_SECRET = "test-jwt-secret-with-enough-length"
FERNET_KEY = Fernet.generate_key().decode()


@pytest.fixture(autouse=True)
def console_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "auth_jwt_secret", JWT_SECRET)
    monkeypatch.setattr(settings, "auth_audience", "authenticated")
    monkeypatch.setattr(settings, "auth_issuer", "")
    monkeypatch.setattr(settings, "session_encryption_key", FERNET_KEY)
    monkeypatch.setattr(settings, "session_cookie_secure", False)
    monkeypatch.setattr(settings, "session_refresh_threshold_seconds", 60)
    monkeypatch.setattr(settings, "superadmin_subjects_csv", "")
    monkeypatch.setattr(settings, "backend_api_url", "https://api.test")
    return settings


@pytest.fixture
def cipher() -> SecurityCipher:
    return SecurityCipher(FERNET_KEY)


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make(
        subject: str = "admin-1",
        *,
        superadmin: bool | None = True,
        expires_in: int = 3600,
        now: float | None = None,
        email: str | None = "admin@stampeo.app",
        **extra: object,
    ) -> str:
        issued = time.time() if now is None else now
        claims: dict[str, object] = {
            "sub": subject,
            "aud": "authenticated",
            "exp": int(issued + expires_in),
            "app_metadata": {} if superadmin is None else {"is_superadmin": superadmin},
        }
        if email:
            claims["email"] = email
        claims.update(extra)
        return jwt.encode(claims, JWT_SECRET, algorithm="HS256")

    return _make


@pytest.fixture
def sign_claims() -> Callable[[dict], str]:
    def _sign(claims: dict) -> str:
        return jwt.encode(claims, JWT_SECRET, algorithm="HS256")

    return _sign
