from __future__ import annotations

import io
from typing import Any

import pytest
import requests

from src.core import backend
from src.core.backend import (
    BackendAuthenticationError,
    BackendClient,
    BackendRejectedError,
    BackendUnavailableError,
)
from src.core.lifecycle import BusinessStatus, CertificateStatus


class _Resp:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = "Reason"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _install(monkeypatch: pytest.MonkeyPatch, response: _Resp) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def _request(method: str, url: str, **kwargs: Any) -> _Resp:
        calls.append({"method": method, "url": url, **kwargs})
        return response

    monkeypatch.setattr(backend.requests, "request", _request)
    return calls


BUSINESS = {
    "id": "biz-1",
    "name": "Cafe Uno",
    "url_slug": "cafe-uno",
    "status": "active",
    "created_at": "2026-01-01T00:00:00Z",
    "activated_at": "2026-01-02T00:00:00Z",
    "updated_at": "2026-01-02T00:00:00Z",
}


def test_pool_stats_request_carries_bearer_token(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, _Resp(payload={"total": 3, "available": 1, "assigned": 1, "revoked": 1}))

    stats = BackendClient("jwt-1", base_url="https://api.test/", timeout=4).fetch_pool_stats()

    assert (stats.total, stats.available, stats.assigned, stats.revoked) == (3, 1, 1, 1)
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"] == "https://api.test/pass-type-ids/pool"
    assert calls[0]["headers"] == {"Authorization": "Bearer jwt-1"}
    assert calls[0]["timeout"] == 4


def test_pool_stats_with_inconsistent_totals_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _Resp(payload={"total": 5, "available": 1, "assigned": 1, "revoked": 1}))

    with pytest.raises(BackendUnavailableError):
        BackendClient("jwt").fetch_pool_stats()


def test_list_certificates_parses_records(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        _Resp(
            payload=[
                {
                    "id": "c1",
                    "identifier": "pass.com.stampeo.biz001",
                    "team_id": "QQJF5895MC",
                    "status": "assigned",
                    "business_id": "biz-1",
                    "business_name": "Cafe Uno",
                    "assigned_at": "2026-01-03T00:00:00Z",
                    "created_at": "2026-01-01T00:00:00Z",
                },
                {
                    "id": "c2",
                    "identifier": "pass.com.stampeo.biz002",
                    "team_id": "QQJF5895MC",
                    "status": "available",
                    "created_at": "2026-01-01T00:00:00Z",
                },
            ]
        ),
    )

    certificates = BackendClient("jwt").list_certificates()

    assert [c.status for c in certificates] == [CertificateStatus.ASSIGNED, CertificateStatus.AVAILABLE]
    assert certificates[0].business_name == "Cafe Uno"
    assert certificates[1].business_id is None


@pytest.mark.parametrize(
    "record",
    [
        {"status": "expired"},
        {"status": "assigned", "business_id": None},
        {"status": "available", "business_id": "biz-1"},
    ],
)
def test_certificate_records_outside_the_state_model_are_rejected(
    monkeypatch: pytest.MonkeyPatch, record: dict[str, Any]
) -> None:
    payload = {"id": "c1", "identifier": "pass.x", "team_id": "T", "created_at": "2026-01-01T00:00:00Z", **record}
    _install(monkeypatch, _Resp(payload=[payload]))

    with pytest.raises(BackendUnavailableError):
        BackendClient("jwt").list_certificates()


def test_upload_sends_multipart_form(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(
        monkeypatch, _Resp(payload={"id": "c9", "identifier": "pass.com.stampeo.new", "status": "available"})
    )
    p12 = io.BytesIO(b"p12-bytes")

    result = BackendClient("jwt").upload_certificate(
        identifier="pass.com.stampeo.new",
        team_id="QQJF5895MC",
        p12_file=p12,
        filename="cert.p12",
        p12_password="pw",
    )

    assert result.status is CertificateStatus.AVAILABLE
    assert calls[0]["url"] == "https://api.test/pass-type-ids/upload"
    assert calls[0]["data"] == {
        "identifier": "pass.com.stampeo.new",
        "team_id": "QQJF5895MC",
        "p12_password": "pw",
    }
    assert calls[0]["files"]["p12_file"] == ("cert.p12", p12, "application/x-pkcs12")


def test_upload_without_password_omits_field(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, _Resp(payload={"id": "c9", "identifier": "pass.x", "status": "available"}))

    BackendClient("jwt").upload_certificate(
        identifier="pass.x", team_id="T", p12_file=io.BytesIO(b""), filename="c.p12"
    )

    assert "p12_password" not in calls[0]["data"]


def test_business_actions_hit_admin_endpoints(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, _Resp(payload={**BUSINESS, "status": "suspended"}))

    business = BackendClient("jwt").suspend_business("biz-1")

    assert business.status is BusinessStatus.SUSPENDED
    assert calls[0]["method"] == "POST"
    assert calls[0]["url"] == "https://api.test/admin/businesses/biz-1/suspend"


def test_revoke_hits_revoke_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, _Resp(payload={"id": "c1", "identifier": "pass.x", "status": "revoked"}))

    result = BackendClient("jwt").revoke_certificate("c1")

    assert result.status is CertificateStatus.REVOKED
    assert calls[0]["url"] == "https://api.test/pass-type-ids/c1/revoke"


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_failures_map_to_authentication_error(monkeypatch: pytest.MonkeyPatch, status_code: int) -> None:
    _install(monkeypatch, _Resp(status_code=status_code, payload={"detail": "Not a superadmin"}))

    with pytest.raises(BackendAuthenticationError, match="Not a superadmin"):
        BackendClient("jwt").list_businesses()


@pytest.mark.parametrize("status_code", [400, 404, 409, 422])
def test_rejections_keep_backend_detail(monkeypatch: pytest.MonkeyPatch, status_code: int) -> None:
    _install(monkeypatch, _Resp(status_code=status_code, payload={"detail": "Pass Type ID already revoked"}))

    with pytest.raises(BackendRejectedError) as exc:
        BackendClient("jwt").revoke_certificate("c1")

    assert exc.value.status_code == status_code
    assert exc.value.detail == "Pass Type ID already revoked"


def test_rejection_without_json_body_uses_text(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _Resp(status_code=409, text="conflict"))

    with pytest.raises(BackendRejectedError) as exc:
        BackendClient("jwt").activate_business("biz-1")

    assert exc.value.detail == "conflict"


def test_server_errors_and_malformed_bodies_are_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _Resp(status_code=502, payload={"detail": "bad gateway"}))
    with pytest.raises(BackendUnavailableError):
        BackendClient("jwt").list_businesses()

    _install(monkeypatch, _Resp(status_code=200, payload=None))
    with pytest.raises(BackendUnavailableError):
        BackendClient("jwt").list_businesses()


def test_network_failure_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*args: Any, **kwargs: Any) -> _Resp:
        raise requests.Timeout("timed out")

    monkeypatch.setattr(backend.requests, "request", _boom)

    with pytest.raises(BackendUnavailableError):
        BackendClient("jwt").fetch_pool_stats()


def test_missing_token_never_reaches_the_network(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, _Resp(payload=[]))

    with pytest.raises(BackendAuthenticationError):
        BackendClient("").list_certificates()

    assert calls == []
