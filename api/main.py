"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.integrations.email import build_round_email_sender
from core.locks import build_round_lock
from database.engine import Database, build_database
from api.routes import health
from api.routes.v1 import admin, applications, reviews
from api.services.advancement import AdvancementOrchestrator
from api.services.notifications import EmailSender, NotificationDispatcher

# Import middleware components
from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    email_sender: Optional[EmailSender] = None,
    round_lock=None,
    create_tables: Optional[bool] = None,
) -> FastAPI:
    """
    Build the API application.

    Every collaborator can be injected; anything omitted is built from
    settings when the application starts.

    Args:
        database: Storage handle
        email_sender: Notification email sender
        round_lock: Per-(cycle, round) lock provider
        create_tables: Create tables on startup (default: outside production)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")

        db = database or build_database(settings)
        lock = round_lock or build_round_lock(
            settings.round_lock_backend,
            settings.redis_url,
            settings.round_lock_timeout,
            settings.round_lock_blocking_timeout,
        )
        dispatcher = NotificationDispatcher(db, email_sender or build_round_email_sender(settings))

        if create_tables if create_tables is not None else settings.app_env != "production":
            await db.init_db()

        app.state.database = db
        app.state.dispatcher = dispatcher
        app.state.orchestrator = AdvancementOrchestrator(
            db,
            dispatcher,
            lock,
            concurrency=settings.advancement_concurrency,
        )

        yield

        logger.info(f"Shutting down {settings.app_name}")
        await lock.close()
        if database is None:
            await db.close()

    app = FastAPI(
        title=settings.app_name,
        description="Recruiting cycle applicant tracking: reviewer decisions and round advancement",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Setup error handlers (before middleware)
    setup_error_handlers(app, debug=settings.debug)

    # Add middleware (order matters - they execute in reverse order)
    # 1. Error handling middleware (outermost - catches all errors)
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)

    # 2. Structured logging middleware
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
        log_response_body=settings.log_response_body,
        max_body_size=settings.log_max_body_size,
    )

    # 3. CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API v1 routes
    app.include_router(
        admin.router,
        prefix=f"{settings.api_v1_prefix}/admin",
        tags=["Admin"],
    )
    app.include_router(
        reviews.router,
        prefix=f"{settings.api_v1_prefix}/reviews",
        tags=["Reviews"],
    )
    app.include_router(
        applications.router,
        prefix=f"{settings.api_v1_prefix}/applications",
        tags=["Applications"],
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
