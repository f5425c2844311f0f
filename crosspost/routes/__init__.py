from .auth import router as auth_router
from .drafts import router as drafts_router
from .publish import router as publish_router
from .accounts import router as accounts_router
from .calendar import router as calendar_router
from .health import router as health_router

__all__ = [
    "auth_router",
    "drafts_router",
    "publish_router",
    "accounts_router",
    "calendar_router",
    "health_router",
]
