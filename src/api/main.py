import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from starlette.responses import RedirectResponse, Response

from src.api.cookies import clear_session_cookie
from src.api.middleware import access_guard_middleware
from src.api.routes.auth import router as auth_router
from src.api.routes.businesses import router as businesses_router
from src.api.routes.certificates import router as certificates_router
from src.api.routes.dashboard import router as dashboard_router
from src.core.backend import BackendAuthenticationError
from src.core.config import settings
from src.core.guard import LOGIN_PATH

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(level=settings.log_level.upper())
    yield


app = FastAPI(title="Stampeo Admin Console", lifespan=lifespan)
app.middleware("http")(access_guard_middleware)
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(certificates_router)
app.include_router(businesses_router)


@app.exception_handler(BackendAuthenticationError)
async def backend_authentication_failed(request: Request, exc: BackendAuthenticationError) -> Response:
    logger.warning("Backend rejected the session credential on %s: %s", request.url.path, exc)
    response = RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
