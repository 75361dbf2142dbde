"""State machines for the two resources the console manages.

Every function here is pure: it takes the current record and returns the
record the backend should end up holding, or raises ``TransitionRejected``.
Authorization is decided upstream by the access guard.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum


class BusinessStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class CertificateStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    REVOKED = "revoked"


class BusinessAction(str, Enum):
    ACTIVATE = "activate"
    SUSPEND = "suspend"


class CertificateAction(str, Enum):
    ASSIGN = "assign"
    REVOKE = "revoke"


# action -> (states it may leave, state it lands in)
BUSINESS_TRANSITIONS: dict[BusinessAction, tuple[frozenset[BusinessStatus], BusinessStatus]] = {
    BusinessAction.ACTIVATE: (
        frozenset({BusinessStatus.PENDING, BusinessStatus.SUSPENDED}),
        BusinessStatus.ACTIVE,
    ),
    BusinessAction.SUSPEND: (
        frozenset({BusinessStatus.PENDING, BusinessStatus.ACTIVE}),
        BusinessStatus.SUSPENDED,
    ),
}

CERTIFICATE_TRANSITIONS: dict[CertificateAction, tuple[frozenset[CertificateStatus], CertificateStatus]] = {
    CertificateAction.ASSIGN: (
        frozenset({CertificateStatus.AVAILABLE}),
        CertificateStatus.ASSIGNED,
    ),
    CertificateAction.REVOKE: (
        frozenset({CertificateStatus.AVAILABLE, CertificateStatus.ASSIGNED}),
        CertificateStatus.REVOKED,
    ),
}


class TransitionRejected(ValueError):
    def __init__(self, *, resource: str, resource_id: str, current: str, action: str, reason: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.current = current
        self.action = action
        self.reason = reason
        super().__init__(f"Cannot {action} {resource} {resource_id}: {reason} (current status: {current})")


@dataclass(slots=True, frozen=True)
class Business:
    id: str
    name: str
    url_slug: str
    subscription_tier: str
    status: BusinessStatus
    created_at: datetime
    updated_at: datetime
    activated_at: datetime | None = None
    owner_name: str | None = None
    owner_email: str | None = None
    logo_url: str | None = None


@dataclass(slots=True, frozen=True)
class Certificate:
    id: str
    identifier: str
    team_id: str
    status: CertificateStatus
    created_at: datetime
    business_id: str | None = None
    business_name: str | None = None
    assigned_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class PoolStats:
    total: int
    available: int
    assigned: int
    revoked: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def business_actions(status: BusinessStatus) -> list[BusinessAction]:
    """Actions that would move a business in ``status`` to a different state."""
    return [action for action, (sources, _) in BUSINESS_TRANSITIONS.items() if status in sources]


def certificate_actions(status: CertificateStatus) -> list[CertificateAction]:
    return [action for action, (sources, _) in CERTIFICATE_TRANSITIONS.items() if status in sources]


def _apply_business_action(business: Business, action: BusinessAction, now: datetime | None) -> Business:
    sources, target = BUSINESS_TRANSITIONS[action]
    if business.status == target:
        return business
    if business.status not in sources:
        raise TransitionRejected(
            resource="business",
            resource_id=business.id,
            current=business.status.value,
            action=action.value,
            reason="transition not allowed",
        )

    moment = now or _utcnow()
    activated_at = business.activated_at
    if target is BusinessStatus.ACTIVE and activated_at is None:
        activated_at = moment
    return replace(business, status=target, activated_at=activated_at, updated_at=moment)


def activate(business: Business, *, now: datetime | None = None) -> Business:
    return _apply_business_action(business, BusinessAction.ACTIVATE, now)


def suspend(business: Business, *, now: datetime | None = None) -> Business:
    return _apply_business_action(business, BusinessAction.SUSPEND, now)


def assign(certificate: Certificate, business_id: str, *, now: datetime | None = None) -> Certificate:
    sources, target = CERTIFICATE_TRANSITIONS[CertificateAction.ASSIGN]
    if certificate.status not in sources:
        raise TransitionRejected(
            resource="certificate",
            resource_id=certificate.id,
            current=certificate.status.value,
            action=CertificateAction.ASSIGN.value,
            reason="only available certificates can be assigned",
        )
    if not business_id:
        raise ValueError("business_id is required to assign a certificate")
    return replace(
        certificate,
        status=target,
        business_id=business_id,
        assigned_at=now or _utcnow(),
    )


def revoke(certificate: Certificate) -> Certificate:
    sources, target = CERTIFICATE_TRANSITIONS[CertificateAction.REVOKE]
    if certificate.status not in sources:
        raise TransitionRejected(
            resource="certificate",
            resource_id=certificate.id,
            current=certificate.status.value,
            action=CertificateAction.REVOKE.value,
            reason="already revoked",
        )
    # business_id stays for audit
    return replace(certificate, status=target)


def compute_pool_stats(certificates: Iterable[Certificate]) -> PoolStats:
    counts = Counter(certificate.status for certificate in certificates)
    available = counts[CertificateStatus.AVAILABLE]
    assigned = counts[CertificateStatus.ASSIGNED]
    revoked = counts[CertificateStatus.REVOKED]
    return PoolStats(
        total=available + assigned + revoked,
        available=available,
        assigned=assigned,
        revoked=revoked,
    )
