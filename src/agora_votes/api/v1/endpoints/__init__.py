"""API endpoint modules for version 1."""

from .discussions import router as discussions_router
from .votes import router as votes_router
from .ws import router as ws_router

__all__ = [
    "discussions_router",
    "votes_router",
    "ws_router",
]
