from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from src.core.lifecycle import Business, BusinessStatus


class BusinessResponse(BaseModel):
    id: str
    name: str
    url_slug: str
    subscription_tier: str = "free"
    status: BusinessStatus
    owner_name: str | None = None
    owner_email: str | None = None
    logo_url: str | None = None
    created_at: datetime
    activated_at: datetime | None = None
    updated_at: datetime

    def to_domain(self) -> Business:
        return Business(
            id=self.id,
            name=self.name,
            url_slug=self.url_slug,
            subscription_tier=self.subscription_tier,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
            activated_at=self.activated_at,
            owner_name=self.owner_name,
            owner_email=self.owner_email,
            logo_url=self.logo_url,
        )
