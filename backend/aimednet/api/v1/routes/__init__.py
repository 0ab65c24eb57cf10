from aimednet.api.v1.routes.auth import router as auth_router
from aimednet.api.v1.routes.connections import router as connections_router
from aimednet.api.v1.routes.conversations import router as conversations_router
from aimednet.api.v1.routes.notifications import router as notifications_router
from aimednet.api.v1.routes.profiles import router as profiles_router

__all__ = [
    "auth_router",
    "connections_router",
    "conversations_router",
    "notifications_router",
    "profiles_router",
]
