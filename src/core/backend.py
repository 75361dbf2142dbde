from __future__ import annotations

import logging
from typing import Any, BinaryIO, TypeVar

import requests
from fastapi import Depends
from pydantic import BaseModel, TypeAdapter, ValidationError

from src.core.auth import Identity, require_identity
from src.core.config import settings
from src.core.lifecycle import Business, Certificate, PoolStats
from src.schemas.businesses import BusinessResponse
from src.schemas.certificates import (
    CertificateActionResponse,
    CertificateResponse,
    PoolStatsResponse,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

REJECTION_STATUS_CODES = frozenset({400, 404, 409, 422})


class BackendError(RuntimeError):
    pass


class BackendAuthenticationError(BackendError):
    pass


class BackendRejectedError(BackendError):
    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend rejected the request (HTTP {status_code}): {detail}")


class BackendUnavailableError(BackendError):
    pass


def _detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason or "Unknown error"
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("message") or payload.get("error")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return str(payload)


class BackendClient:
    """Client for the pass platform's resource API.

    Every call carries the operator's bearer token and is bounded by
    ``timeout``. Methods are blocking; call them through ``asyncio.to_thread``
    from request handlers.
    """

    def __init__(self, access_token: str, *, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.backend_api_url).rstrip("/")
        self.access_token = access_token
        self.timeout = timeout or settings.backend_timeout_seconds

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self.access_token:
            raise BackendAuthenticationError("No bearer token available for the backend")

        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.warning("Backend %s %s failed: %s", method, path, exc)
            raise BackendUnavailableError(f"Backend is unreachable: {exc}") from exc

        if response.status_code in {401, 403}:
            raise BackendAuthenticationError(_detail(response))
        if response.status_code in REJECTION_STATUS_CODES:
            raise BackendRejectedError(response.status_code, _detail(response))
        if not response.ok:
            logger.warning("Backend %s %s returned HTTP %s", method, path, response.status_code)
            raise BackendUnavailableError(f"Backend returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise BackendUnavailableError("Backend returned a malformed body") from exc

    def _parse(self, schema: type[SchemaT], payload: Any) -> SchemaT:
        try:
            return schema.model_validate(payload)
        except ValidationError as exc:
            raise BackendUnavailableError(f"Backend returned an unexpected {schema.__name__}: {exc}") from exc

    def _parse_list(self, schema: type[SchemaT], payload: Any) -> list[SchemaT]:
        try:
            return TypeAdapter(list[schema]).validate_python(payload)  # type: ignore[valid-type]
        except ValidationError as exc:
            raise BackendUnavailableError(f"Backend returned an unexpected {schema.__name__} list: {exc}") from exc

    def fetch_pool_stats(self) -> PoolStats:
        payload = self._request("GET", "/pass-type-ids/pool")
        return self._parse(PoolStatsResponse, payload).to_domain()

    def list_certificates(self) -> list[Certificate]:
        payload = self._request("GET", "/pass-type-ids/")
        return [item.to_domain() for item in self._parse_list(CertificateResponse, payload)]

    def upload_certificate(
        self,
        *,
        identifier: str,
        team_id: str,
        p12_file: BinaryIO,
        filename: str,
        p12_password: str | None = None,
    ) -> CertificateActionResponse:
        data = {"identifier": identifier, "team_id": team_id}
        if p12_password:
            data["p12_password"] = p12_password
        payload = self._request(
            "POST",
            "/pass-type-ids/upload",
            data=data,
            files={"p12_file": (filename, p12_file, "application/x-pkcs12")},
        )
        return self._parse(CertificateActionResponse, payload)

    def revoke_certificate(self, certificate_id: str) -> CertificateActionResponse:
        payload = self._request("POST", f"/pass-type-ids/{certificate_id}/revoke")
        return self._parse(CertificateActionResponse, payload)

    def list_businesses(self) -> list[Business]:
        payload = self._request("GET", "/admin/businesses")
        return [item.to_domain() for item in self._parse_list(BusinessResponse, payload)]

    def activate_business(self, business_id: str) -> Business:
        payload = self._request("POST", f"/admin/businesses/{business_id}/activate")
        return self._parse(BusinessResponse, payload).to_domain()

    def suspend_business(self, business_id: str) -> Business:
        payload = self._request("POST", f"/admin/businesses/{business_id}/suspend")
        return self._parse(BusinessResponse, payload).to_domain()


def get_backend_client(identity: Identity = Depends(require_identity)) -> BackendClient:
    return BackendClient(identity.raw_token)
