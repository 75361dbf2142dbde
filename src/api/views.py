from __future__ import annotations

from datetime import datetime
from pathlib import Path
from urllib.parse import urlencode

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette import status
from starlette.responses import RedirectResponse, Response

from src.core.backend import BackendRejectedError, BackendUnavailableError
from src.core.console import InconsistentReplyError, ResourceNotFoundError
from src.core.lifecycle import TransitionRejected

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
UNAVAILABLE_MESSAGE = "The platform API is temporarily unavailable. Please retry."

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _format_date(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d")


templates.env.filters["date"] = _format_date


def render(
    request: Request,
    name: str,
    context: dict[str, object] | None = None,
    *,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    payload: dict[str, object] = {
        "identity": getattr(request.state, "identity", None),
        "active_path": request.url.path,
        "notice": request.query_params.get("notice"),
        "failure": request.query_params.get("failure"),
    }
    payload.update(context or {})
    return templates.TemplateResponse(request=request, name=name, context=payload, status_code=status_code)


def redirect_with(path: str, *, notice: str | None = None, failure: str | None = None, **params: str) -> RedirectResponse:
    query = {key: value for key, value in params.items() if value}
    if notice:
        query["notice"] = notice
    if failure:
        query["failure"] = failure
    url = f"{path}?{urlencode(query)}" if query else path
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def action_failure_message(exc: Exception) -> str:
    if isinstance(exc, TransitionRejected):
        return f"Cannot {exc.action} {exc.resource}: {exc.reason} (currently {exc.current})."
    if isinstance(exc, BackendRejectedError):
        return f"Rejected by the platform: {exc.detail}"
    if isinstance(exc, InconsistentReplyError):
        return (
            f"{exc.resource.capitalize()} {exc.resource_id} was saved but the platform reports it as "
            f"{exc.reported} instead of {exc.expected}. Check the list before retrying."
        )
    if isinstance(exc, ResourceNotFoundError):
        return str(exc)
    if isinstance(exc, BackendUnavailableError):
        return UNAVAILABLE_MESSAGE
    return "Unknown error"
