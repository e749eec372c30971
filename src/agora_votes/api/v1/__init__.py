"""Version 1 API endpoints."""

from .endpoints import discussions_router, votes_router, ws_router

__all__ = [
    "discussions_router",
    "votes_router",
    "ws_router",
]
