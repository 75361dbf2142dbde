from src.api.routes.auth import router as auth_router
from src.api.routes.businesses import router as businesses_router
from src.api.routes.certificates import router as certificates_router
from src.api.routes.dashboard import router as dashboard_router

__all__ = [
    "auth_router",
    "businesses_router",
    "certificates_router",
    "dashboard_router",
]
