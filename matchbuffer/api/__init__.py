from matchbuffer.api.assets import router as assets_router
from matchbuffer.api.groups import router as groups_router
from matchbuffer.api.health import router as health_router
from matchbuffer.api.sessions import router as sessions_router

__all__ = [
    "assets_router",
    "groups_router",
    "health_router",
    "sessions_router",
]
