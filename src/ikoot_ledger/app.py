from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from ikoot_ledger.core.settings import settings
from ikoot_ledger.db.base import Base
from ikoot_ledger.db.session import engine
from ikoot_ledger import models  # noqa: F401  registers tables on Base.metadata
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"
SERVICE_NAME = "ikoot-ledger"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_auto_create:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", database_url=engine.url.render_as_string(hide_password=True))
    else:
        logger.info(
            "Database schema auto-create disabled",
            reason="database_auto_create is false; run alembic upgrade head",
        )

    try:
        yield
    finally:
        await engine.dispose()


def create_app() -> FastAPI:
    """Application factory for the IKOOT loyalty ledger service."""
    configure_logging(
        service_name=SERVICE_NAME,
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="IKOOT Loyalty Ledger API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name=SERVICE_NAME,
        service_version=APP_VERSION,
        environment=settings.environment,
        console_fallback=settings.tracing_console_export,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
