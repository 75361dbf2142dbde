"""Operator actions: validate with the lifecycle tables, then call the backend.

The backend stays authoritative. Its current state is fetched fresh before
each action so that obviously illegal requests (revoking a revoked
certificate) are rejected without a write, and a concurrent change that the
fresh read missed is still rejected by the backend itself.
"""
from __future__ import annotations

import asyncio
import logging
from typing import BinaryIO

from src.core import lifecycle
from src.core.backend import BackendClient, BackendError
from src.core.lifecycle import (
    Business,
    BusinessAction,
    Certificate,
    CertificateStatus,
    PoolStats,
)
from src.schemas.certificates import CertificateActionResponse

logger = logging.getLogger(__name__)


class InconsistentReplyError(BackendError):
    """The backend accepted a write but reported a state other than the expected one."""

    def __init__(self, resource: str, resource_id: str, reported: str, expected: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.reported = reported
        self.expected = expected
        super().__init__(f"{resource.capitalize()} {resource_id} was saved with status {reported}, expected {expected}")


class ResourceNotFoundError(LookupError):
    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource.capitalize()} {resource_id} was not found")


async def fetch_pool_stats(client: BackendClient) -> PoolStats:
    return await asyncio.to_thread(client.fetch_pool_stats)


async def fetch_certificates(client: BackendClient) -> list[Certificate]:
    return await asyncio.to_thread(client.list_certificates)


async def fetch_businesses(client: BackendClient) -> list[Business]:
    return await asyncio.to_thread(client.list_businesses)


async def _find_certificate(client: BackendClient, certificate_id: str) -> Certificate:
    for certificate in await fetch_certificates(client):
        if certificate.id == certificate_id:
            return certificate
    raise ResourceNotFoundError("certificate", certificate_id)


async def _find_business(client: BackendClient, business_id: str) -> Business:
    for business in await fetch_businesses(client):
        if business.id == business_id:
            return business
    raise ResourceNotFoundError("business", business_id)


async def upload_certificate(
    client: BackendClient,
    *,
    identifier: str,
    team_id: str,
    p12_file: BinaryIO,
    filename: str,
    p12_password: str | None = None,
) -> CertificateActionResponse:
    result = await asyncio.to_thread(
        lambda: client.upload_certificate(
            identifier=identifier,
            team_id=team_id,
            p12_file=p12_file,
            filename=filename,
            p12_password=p12_password,
        )
    )
    if result.status is not CertificateStatus.AVAILABLE:
        raise InconsistentReplyError(
            "certificate", result.identifier, result.status.value, CertificateStatus.AVAILABLE.value
        )
    logger.info("Uploaded certificate identifier=%s id=%s", result.identifier, result.id)
    return result


async def revoke_certificate(client: BackendClient, certificate_id: str) -> CertificateActionResponse:
    current = await _find_certificate(client, certificate_id)
    expected = lifecycle.revoke(current)

    result = await asyncio.to_thread(client.revoke_certificate, certificate_id)
    if result.status is not expected.status:
        raise InconsistentReplyError("certificate", result.identifier, result.status.value, expected.status.value)
    logger.info("Revoked certificate identifier=%s id=%s", result.identifier, result.id)
    return result


async def change_business_status(
    client: BackendClient, business_id: str, action: BusinessAction
) -> Business:
    current = await _find_business(client, business_id)
    if action is BusinessAction.ACTIVATE:
        expected = lifecycle.activate(current)
        call = client.activate_business
    else:
        expected = lifecycle.suspend(current)
        call = client.suspend_business

    if expected is current:
        logger.info("Business %s is already %s", business_id, current.status.value)
        return current

    updated = await asyncio.to_thread(call, business_id)
    if updated.status is not expected.status:
        raise InconsistentReplyError("business", updated.name, updated.status.value, expected.status.value)
    if current.activated_at is not None and updated.activated_at != current.activated_at:
        logger.warning(
            "Backend changed activated_at of business %s from %s to %s",
            business_id,
            current.activated_at,
            updated.activated_at,
        )
    logger.info("Business %s moved %s -> %s", business_id, current.status.value, updated.status.value)
    return updated
