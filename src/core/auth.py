from __future__ import annotations

import time
from dataclasses import dataclass, field

import requests
from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from src.core.config import settings

ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


class TokenVerificationError(ValueError):
    pass


@dataclass(slots=True, frozen=True)
class Identity:
    subject: str
    is_superadmin: bool
    raw_token: str
    expires_at: int
    email: str | None = None
    claims: dict = field(default_factory=dict, compare=False, repr=False)


class JwksCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._jwks: dict | None = None
        self._fetched_at = 0.0

    def get(self, url: str) -> dict:
        now = time.time()
        if self._jwks is None or (now - self._fetched_at) > self.ttl_seconds:
            response = requests.get(url, timeout=settings.identity_provider_timeout_seconds)
            response.raise_for_status()
            self._jwks = response.json()
            self._fetched_at = now
        return self._jwks


jwks_cache = JwksCache()


def _get_signing_key(token: str) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise TokenVerificationError("Invalid token header") from exc

    kid = unverified_header.get("kid")
    if not kid:
        raise TokenVerificationError("JWT is missing key id")

    try:
        jwks = jwks_cache.get(settings.auth_jwks_url)
    except (requests.RequestException, ValueError) as exc:
        raise TokenVerificationError("Signing keys are unavailable") from exc

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    raise TokenVerificationError("No matching signing key found")


def decode_access_token(token: str) -> dict:
    """Verify the signature and registered claims of a session access token.

    Expiry is not enforced here: the session resolver compares ``exp`` with
    its own clock so that an expired token can still trigger a refresh.
    """
    if settings.auth_jwt_secret:
        key: dict | str = settings.auth_jwt_secret
        algorithms = ["HS256"]
    else:
        key = _get_signing_key(token)
        algorithms = ASYMMETRIC_ALGORITHMS

    options = {"verify_aud": bool(settings.auth_audience), "verify_exp": False}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            issuer=settings.auth_issuer or None,
            audience=settings.auth_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise TokenVerificationError("Invalid token") from exc


def _is_superadmin(claims: dict) -> bool:
    if claims.get("sub") in settings.superadmin_subjects():
        return True
    app_metadata = claims.get("app_metadata")
    if not isinstance(app_metadata, dict):
        return False
    return app_metadata.get("is_superadmin") is True


def identity_from_token(token: str) -> Identity:
    claims = decode_access_token(token)
    subject = claims.get("sub")
    if not subject or not isinstance(subject, str):
        raise TokenVerificationError("Token is missing the subject claim")

    expires_at = claims.get("exp")
    if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
        raise TokenVerificationError("Token is missing the expiry claim")

    return Identity(
        subject=subject,
        is_superadmin=_is_superadmin(claims),
        raw_token=token,
        email=claims.get("email"),
        expires_at=int(expires_at),
        claims=claims,
    )


async def require_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, Identity) or not identity.is_superadmin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Superadmin session required",
        )
    return identity
