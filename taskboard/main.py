"""
Main FastAPI application.

This is the entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from taskboard.core.config import settings
from taskboard.db import session as db_session
from taskboard.errors import AppError, app_error_handler, validation_error_handler
from taskboard.routers import events, health, task, time_logs
from taskboard.services.event_broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for the FastAPI app.
    
    - On startup: configure logging, optionally create tables
    - On shutdown: close every observer so websocket handlers return
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting %s...", settings.APP_NAME)
    if settings.AUTO_CREATE_SCHEMA:
        await db_session.create_schema(db_session.engine)
        logger.info("Schema created from metadata")

    yield  # The server runs while we're "yielded" here

    app.state.broadcaster.close()
    logger.info("Shutting down %s...", settings.APP_NAME)


def create_app() -> FastAPI:
    """Build the application with its own broadcaster (one per process)."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Shared task board API with live board events",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.broadcaster = EventBroadcaster(queue_size=settings.BROADCAST_QUEUE_SIZE)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health.router, tags=["Health"])
    app.include_router(task.router)
    app.include_router(time_logs.router)
    app.include_router(events.router, tags=["Events"])
    return app


app = create_app()
