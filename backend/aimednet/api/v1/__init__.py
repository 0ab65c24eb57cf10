from fastapi import APIRouter

from aimednet.api.v1.routes import (
    auth_router,
    connections_router,
    conversations_router,
    notifications_router,
    profiles_router,
)
from aimednet.core.config import settings

api_v1_router = APIRouter(prefix=settings.API_V1_STR)
api_v1_router.include_router(auth_router)
api_v1_router.include_router(profiles_router)
api_v1_router.include_router(conversations_router)
api_v1_router.include_router(notifications_router)
api_v1_router.include_router(connections_router)

__all__ = ["api_v1_router"]
