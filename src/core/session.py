"""Cookie-carried operator sessions.

A session is the pair of tokens issued by the identity provider, sealed into
a single HTTP-only cookie. ``resolve_session`` turns the cookie of an inbound
request into an ``Authenticated`` or ``Unauthenticated`` state, refreshing the
tokens at most once when the access token is close to expiry.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import requests

from src.core.auth import Identity, TokenVerificationError, identity_from_token
from src.core.config import settings
from src.core.security.crypto import EncryptionError, SecurityCipher

logger = logging.getLogger(__name__)


class IdentityProviderError(RuntimeError):
    pass


class InvalidCredentialsError(IdentityProviderError):
    pass


@dataclass(slots=True, frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str

    def seal(self, cipher: SecurityCipher) -> str:
        return cipher.seal({"access_token": self.access_token, "refresh_token": self.refresh_token})

    @classmethod
    def unseal(cls, sealed: str, cipher: SecurityCipher) -> SessionTokens:
        payload = cipher.unseal(sealed)
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token") or ""
        if not access_token or not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise EncryptionError("Session cookie is missing the access token")
        return cls(access_token=access_token, refresh_token=refresh_token)


@dataclass(slots=True, frozen=True)
class Authenticated:
    identity: Identity


@dataclass(slots=True, frozen=True)
class Unauthenticated:
    reason: str = "no session"


SessionState = Authenticated | Unauthenticated


@dataclass(slots=True, frozen=True)
class SessionResolution:
    state: SessionState
    rotated: SessionTokens | None = None
    clear_cookie: bool = False

    @property
    def identity(self) -> Identity | None:
        if isinstance(self.state, Authenticated):
            return self.state.identity
        return None


class IdentityProviderClient:
    """Minimal client for the GoTrue endpoints the console needs."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.supabase_anon_key
        self.timeout = timeout or settings.identity_provider_timeout_seconds

    @property
    def request_timeout(self) -> tuple[float, float]:
        # connect + read stays within the budget callers wait for
        return (self.timeout / 2, self.timeout / 2)

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _token_request(self, grant_type: str, body: dict[str, str]) -> SessionTokens:
        try:
            response = requests.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": grant_type},
                json=body,
                headers=self._headers(),
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            raise IdentityProviderError(f"Identity provider is unreachable: {exc}") from exc

        if response.status_code in {400, 401, 403, 422}:
            raise InvalidCredentialsError(_error_message(response))
        if not response.ok:
            raise IdentityProviderError(f"Identity provider returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise IdentityProviderError("Identity provider returned a malformed body") from exc

        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not access_token or not refresh_token:
            raise IdentityProviderError("Identity provider response is missing tokens")
        return SessionTokens(access_token=access_token, refresh_token=refresh_token)

    def sign_in_with_password(self, email: str, password: str) -> SessionTokens:
        return self._token_request("password", {"email": email, "password": password})

    def refresh(self, refresh_token: str) -> SessionTokens:
        return self._token_request("refresh_token", {"refresh_token": refresh_token})

    def sign_out(self, access_token: str) -> None:
        try:
            response = requests.post(
                f"{self.base_url}/auth/v1/logout",
                headers=self._headers(access_token),
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            raise IdentityProviderError(f"Identity provider is unreachable: {exc}") from exc
        # 401 means the session is already gone
        if not response.ok and response.status_code != 401:
            raise IdentityProviderError(f"Sign-out failed with HTTP {response.status_code}")


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return "Invalid login credentials"
    return (
        payload.get("error_description")
        or payload.get("msg")
        or payload.get("message")
        or "Invalid login credentials"
    )


async def _verify(token: str) -> Identity:
    if settings.auth_jwt_secret:
        return identity_from_token(token)
    # JWKS mode may fetch signing keys over the network
    return await asyncio.to_thread(identity_from_token, token)


def _needs_refresh(identity: Identity, now: float) -> bool:
    return identity.expires_at - now <= settings.session_refresh_threshold_seconds


async def _refresh_identity(
    tokens: SessionTokens, provider: IdentityProviderClient
) -> tuple[Identity, SessionTokens]:
    rotated = await asyncio.wait_for(
        asyncio.to_thread(provider.refresh, tokens.refresh_token),
        timeout=settings.identity_provider_timeout_seconds,
    )
    return await _verify(rotated.access_token), rotated


async def resolve_session(
    cookie_value: str | None,
    *,
    cipher: SecurityCipher,
    provider: IdentityProviderClient,
    now: float | None = None,
) -> SessionResolution:
    if not cookie_value:
        return SessionResolution(state=Unauthenticated())

    try:
        tokens = SessionTokens.unseal(cookie_value, cipher)
        identity = await _verify(tokens.access_token)
    except (EncryptionError, TokenVerificationError) as exc:
        logger.info("Discarding unusable session cookie: %s", exc)
        return SessionResolution(state=Unauthenticated(reason="invalid session"), clear_cookie=True)

    current_time = time.time() if now is None else now
    if not _needs_refresh(identity, current_time):
        return SessionResolution(state=Authenticated(identity))

    if not tokens.refresh_token:
        if identity.expires_at > current_time:
            return SessionResolution(state=Authenticated(identity))
        return SessionResolution(state=Unauthenticated(reason="session expired"), clear_cookie=True)

    try:
        refreshed, rotated = await _refresh_identity(tokens, provider)
    except (IdentityProviderError, TokenVerificationError, asyncio.TimeoutError) as exc:
        logger.warning("Session refresh failed for subject=%s: %s", identity.subject, exc)
        return SessionResolution(state=Unauthenticated(reason="refresh failed"), clear_cookie=True)

    if refreshed.expires_at <= current_time:
        return SessionResolution(state=Unauthenticated(reason="refresh failed"), clear_cookie=True)

    logger.info("Rotated session for subject=%s", refreshed.subject)
    return SessionResolution(state=Authenticated(refreshed), rotated=rotated)
