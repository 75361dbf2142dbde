from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.responses import Response

from src.api.views import UNAVAILABLE_MESSAGE, render
from src.core.backend import BackendClient, BackendUnavailableError, get_backend_client
from src.core.console import fetch_pool_stats

router = APIRouter(tags=["dashboard"])


@router.get("/")
async def dashboard(
    request: Request,
    uploaded: str | None = Query(default=None),
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    try:
        stats = await fetch_pool_stats(client)
    except BackendUnavailableError:
        return render(
            request,
            "dashboard.html",
            {"stats": None, "uploaded": uploaded, "failure": UNAVAILABLE_MESSAGE},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return render(request, "dashboard.html", {"stats": stats, "uploaded": uploaded})
