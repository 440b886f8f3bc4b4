"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Each app owns its Broadcaster (app.state.broadcaster), created
here rather than in the lifespan so that test transports which skip
lifespan events still get one.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prayoverus import __version__
from prayoverus.api import api_router
from prayoverus.config import settings
from prayoverus.logging_config import configure_logging
from prayoverus.middleware.request_id import RequestIdMiddleware
from prayoverus.middleware.security import SecurityHeadersMiddleware
from prayoverus.realtime.broadcaster import Broadcaster
from prayoverus.realtime.websocket import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    Open sockets aren't drained on shutdown; clients reconnect and refetch.
    """
    logger.info(
        "prayoverus.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info(
        "prayoverus.shutdown",
        open_sockets=len(app.state.broadcaster),
    )

    from prayoverus.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.log_level, json=settings.log_json)

    app = FastAPI(
        title="PrayOverUs",
        description="Prayer requests, support, comments and groups with real-time updates",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.broadcaster = Broadcaster()

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → Security → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: prayoverus.main:app)
app = create_app()
