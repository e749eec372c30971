# src/agora_votes/main.py
"""Main entry point for the Agora voting service."""

from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from agora_votes.api.v1 import discussions_router, votes_router, ws_router
from agora_votes.core.logging import configure_logging
from agora_votes.core.settings import settings
from agora_votes.services.realtime import (
    RoomBroadcastNotifier,
    get_connection_registry,
    get_notifier,
)

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Agora Votes API",
    description="Discussion and reply voting with live score updates",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(discussions_router, prefix="/api/v1")
app.include_router(votes_router, prefix="/api/v1")
app.include_router(ws_router)


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    notifier = get_notifier()
    if isinstance(notifier, RoomBroadcastNotifier):
        # Vote routes run in the threadpool and publish onto this loop.
        notifier.bind(asyncio.get_running_loop())
    logger.info(
        "%s %s starting (realtime %s)",
        settings.app_name,
        settings.app_version,
        "enabled" if settings.realtime_enabled else "disabled",
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    notifier = get_notifier()
    if isinstance(notifier, RoomBroadcastNotifier):
        await notifier.drain()
        notifier.bind(None)
    get_connection_registry().clear()


@app.get("/health")
async def health_check() -> dict[str, object]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok", "rooms": len(get_connection_registry().rooms())}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Discussion and reply voting with live score updates",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agora_votes.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
