from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from starlette.responses import Response

from src.api.views import UNAVAILABLE_MESSAGE, action_failure_message, redirect_with, render
from src.core import console
from src.core.backend import (
    BackendClient,
    BackendRejectedError,
    BackendUnavailableError,
    get_backend_client,
)
from src.core.lifecycle import BusinessAction, TransitionRejected, business_actions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/businesses", tags=["businesses"])


@router.get("")
async def list_businesses(
    request: Request,
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    try:
        businesses = await console.fetch_businesses(client)
    except BackendUnavailableError:
        return render(
            request,
            "businesses.html",
            {"businesses": [], "failure": UNAVAILABLE_MESSAGE},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return render(
        request,
        "businesses.html",
        {
            "businesses": businesses,
            "actions": {item.id: [action.value for action in business_actions(item.status)] for item in businesses},
        },
    )


async def _transition(client: BackendClient, business_id: str, action: BusinessAction) -> Response:
    try:
        business = await console.change_business_status(client, business_id, action)
    except (
        TransitionRejected,
        BackendRejectedError,
        BackendUnavailableError,
        console.ResourceNotFoundError,
        console.InconsistentReplyError,
    ) as exc:
        logger.warning("Business %s %s failed: %s", action.value, business_id, exc)
        return redirect_with(
            "/businesses",
            failure=f"{action.value.capitalize()} failed: {action_failure_message(exc)}",
        )

    return redirect_with("/businesses", notice=f"{business.name} is now {business.status.value}")


@router.post("/{business_id}/activate")
async def activate_business(
    business_id: str,
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    return await _transition(client, business_id, BusinessAction.ACTIVATE)


@router.post("/{business_id}/suspend")
async def suspend_business(
    business_id: str,
    client: BackendClient = Depends(get_backend_client),
) -> Response:
    return await _transition(client, business_id, BusinessAction.SUSPEND)
