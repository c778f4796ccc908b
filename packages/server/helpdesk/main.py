"""
Helpdesk Provisioning API Server

Entry point for the FastAPI application.
"""

from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from helpdesk.api.v1 import router as api_v1_router
from helpdesk.core.config import get_settings
from helpdesk.core.database import get_engine
from helpdesk.core.logging import configure_logging
from helpdesk.services.templates import load_configured_template
from helpdesk_shared.schemas.templates import TemplateDefinition

settings = get_settings()
log = structlog.get_logger()


def create_app(template: Optional[TemplateDefinition] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The provisioning template is loaded here, once, unless one is passed in.
    """
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Helpdesk Provisioning",
        description="Tenant template application and company hierarchy replication.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.template = template if template is not None else load_configured_template(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(engine: AsyncEngine = Depends(get_engine)):
        """Readiness check endpoint: the database must answer."""
        try:
            async with engine.connect() as conn:
                await conn.execute(sa.text("SELECT 1"))
        except SQLAlchemyError as exc:
            log.warning("Database not ready", error=str(exc))
            raise HTTPException(status_code=503, detail="Database unavailable") from exc
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info(
            "Helpdesk provisioning starting",
            template_version=app.state.template.version,
            categories=len(app.state.template.categories),
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Helpdesk provisioning shutting down")
        await get_engine().dispose()

    return app


app = create_app()
