"""
PlayerPath API Routers.

All routers are imported here for easy access.
"""

from app.routers.auth import router as auth_router
from app.routers.session import router as session_router
from app.routers.media import router as media_router

__all__ = [
    "auth_router",
    "session_router",
    "media_router",
]
