# src/goal_chat/main.py
"""Main entry point for the goal-chat service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from goal_chat.api.v1 import chat_router
from goal_chat.core.logging import configure_logging
from goal_chat.core.settings import settings
from goal_chat.services.chat import get_chat_services, reset_chat_services

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Goal Chat API",
    description="Real-time chat delivery and conversation history",
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
app.include_router(chat_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings)
    if settings.create_tables_on_startup:
        from goal_chat.db.session import create_tables

        await create_tables()
    services = get_chat_services()
    logger.info(
        "%s %s started (presence backend: %s)",
        settings.app_name,
        settings.app_version,
        type(services.presence).__name__,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    services = reset_chat_services()
    if services is not None:
        await services.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Goal Chat API",
        "version": settings.app_version,
        "description": "Real-time chat delivery and conversation history",
        "docs": "/docs",
        "redoc": "/redoc"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("goal_chat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
