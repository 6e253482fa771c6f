from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chainwatch.api.middleware import register_middleware
from chainwatch.api.router import api_router
from chainwatch.config.settings import settings
from chainwatch.core.logger import get_logger
from chainwatch.core.logging import configure_logging
from chainwatch.db.database import check_database_connection, create_database

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info("app.startup", env=settings.environment, version=settings.API_VERSION)
    db = create_database(settings.database_config())
    connected = await check_database_connection(
        db,
        retries=settings.DB_RETRY_ATTEMPTS,
        delay=settings.retry_delay_seconds,
    )
    if not connected:
        await db.close()
        logger.critical("app.startup.db_unavailable", env=settings.environment)
        raise RuntimeError("Startup aborted: database is not reachable")
    app.state.db = db
    yield
    await db.close()
    logger.info("app.shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Blockchain Test Report API",
        version=settings.API_VERSION,
        description="Query, analytics and search over blockchain test reports",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middleware(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
