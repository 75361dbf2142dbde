from __future__ import annotations

import logging
from pathlib import PurePath

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import ValidationError
from starlette.responses import Response

from src.api.views import UNAVAILABLE_MESSAGE, action_failure_message, redirect_with, render
from src.core import console
from src.core.backend import (
    BackendClient,
    BackendRejectedError,
    BackendUnavailableError,
    get_backend_client,
)
from src.core.lifecycle import CertificateAction, TransitionRejected, certificate_actions, compute_pool_stats
from src.schemas.certificates import CertificateUploadForm

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/certificates", tags=["certificates"])

P12_SUFFIXES = {".p12", ".pfx"}


@router.get("")
async def list_certificates(
    request: Request,
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    try:
        certificates = await console.fetch_certificates(client)
    except BackendUnavailableError:
        return render(
            request,
            "certificates.html",
            {"certificates": [], "stats": None, "failure": UNAVAILABLE_MESSAGE},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return render(
        request,
        "certificates.html",
        {
            "certificates": certificates,
            "stats": compute_pool_stats(certificates),
            "revocable": {
                item.id for item in certificates if CertificateAction.REVOKE in certificate_actions(item.status)
            },
        },
    )


@router.post("/upload")
async def upload_certificate(
    identifier: str = Form(...),
    team_id: str = Form(...),
    p12_file: UploadFile = File(...),
    p12_password: str | None = Form(default=None),
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    try:
        form = CertificateUploadForm(
            identifier=identifier.strip(),
            team_id=team_id.strip(),
            p12_password=p12_password or None,
        )
    except ValidationError as exc:
        fields = ", ".join(str(error["loc"][0]) for error in exc.errors())
        return redirect_with("/", failure=f"Upload failed: invalid {fields}")

    filename = p12_file.filename or "certificate.p12"
    if PurePath(filename).suffix.lower() not in P12_SUFFIXES:
        return redirect_with("/", failure="Upload failed: expected a .p12 or .pfx file")

    try:
        result = await console.upload_certificate(
            client,
            identifier=form.identifier,
            team_id=form.team_id,
            p12_file=p12_file.file,
            filename=filename,
            p12_password=form.p12_password,
        )
    except (BackendRejectedError, BackendUnavailableError, console.InconsistentReplyError) as exc:
        logger.warning("Certificate upload failed identifier=%s: %s", form.identifier, exc)
        return redirect_with("/", failure=f"Upload failed: {action_failure_message(exc)}")
    finally:
        await p12_file.close()

    return redirect_with(
        "/",
        notice="Certificate uploaded successfully",
        uploaded=result.identifier,
    )


@router.post("/{certificate_id}/revoke")
async def revoke_certificate(
    certificate_id: str,
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    try:
        result = await console.revoke_certificate(client, certificate_id)
    except (
        TransitionRejected,
        BackendRejectedError,
        BackendUnavailableError,
        console.ResourceNotFoundError,
        console.InconsistentReplyError,
    ) as exc:
        logger.warning("Revoke of certificate %s failed: %s", certificate_id, exc)
        return redirect_with("/certificates", failure=f"Revoke failed: {action_failure_message(exc)}")

    return redirect_with("/certificates", notice=f"Certificate revoked: {result.identifier} has been revoked")
