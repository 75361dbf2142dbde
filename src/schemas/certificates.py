from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, NonNegativeInt, model_validator

from src.core.lifecycle import Certificate, CertificateStatus, PoolStats


class PoolStatsResponse(BaseModel):
    total: NonNegativeInt
    available: NonNegativeInt
    assigned: NonNegativeInt
    revoked: NonNegativeInt

    @model_validator(mode="after")
    def _total_matches_breakdown(self) -> PoolStatsResponse:
        if self.total != self.available + self.assigned + self.revoked:
            raise ValueError("total does not equal available + assigned + revoked")
        return self

    def to_domain(self) -> PoolStats:
        return PoolStats(
            total=self.total,
            available=self.available,
            assigned=self.assigned,
            revoked=self.revoked,
        )


class CertificateResponse(BaseModel):
    id: str
    identifier: str
    team_id: str
    status: CertificateStatus
    business_id: str | None = None
    business_name: str | None = None
    assigned_at: datetime | None = None
    created_at: datetime

    @model_validator(mode="after")
    def _business_link_matches_status(self) -> CertificateResponse:
        if self.status is CertificateStatus.ASSIGNED and not self.business_id:
            raise ValueError("assigned certificate has no business_id")
        if self.status is CertificateStatus.AVAILABLE and self.business_id:
            raise ValueError("available certificate is linked to a business")
        return self

    def to_domain(self) -> Certificate:
        return Certificate(
            id=self.id,
            identifier=self.identifier,
            team_id=self.team_id,
            status=self.status,
            created_at=self.created_at,
            business_id=self.business_id,
            business_name=self.business_name,
            assigned_at=self.assigned_at,
        )


class CertificateActionResponse(BaseModel):
    id: str
    identifier: str
    status: CertificateStatus


class CertificateUploadForm(BaseModel):
    identifier: str = Field(min_length=3, max_length=255)
    team_id: str = Field(min_length=1, max_length=32)
    p12_password: str | None = Field(default=None, max_length=255)
