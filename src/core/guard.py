"""Per-request access policy for the console routes."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.core.session import Authenticated, SessionState

LOGIN_PATH = "/login"
ROOT_PATH = "/"
UNAUTHORIZED_ERROR = "unauthorized"

# Served without a session, like static assets
UNGUARDED_PATHS = frozenset({"/health", "/favicon.ico"})


class AccessOutcome(str, Enum):
    ALLOW = "allow"
    REDIRECT_ROOT = "redirect_root"
    REDIRECT_LOGIN = "redirect_login"
    FORCE_LOGOUT = "force_logout"


@dataclass(slots=True, frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    location: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AccessOutcome.ALLOW


ALLOW = AccessDecision(AccessOutcome.ALLOW)


def is_guarded(path: str) -> bool:
    return path not in UNGUARDED_PATHS


def is_login_path(path: str) -> bool:
    return path.rstrip("/") == LOGIN_PATH


def evaluate_access(path: str, session: SessionState) -> AccessDecision:
    is_superadmin = isinstance(session, Authenticated) and session.identity.is_superadmin

    if is_login_path(path):
        if is_superadmin:
            return AccessDecision(AccessOutcome.REDIRECT_ROOT, ROOT_PATH)
        return ALLOW

    if not isinstance(session, Authenticated):
        return AccessDecision(AccessOutcome.REDIRECT_LOGIN, LOGIN_PATH)

    if not is_superadmin:
        return AccessDecision(
            AccessOutcome.FORCE_LOGOUT,
            f"{LOGIN_PATH}?error={UNAUTHORIZED_ERROR}",
        )

    return ALLOW
