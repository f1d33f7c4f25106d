"""
DepositBack - FastAPI Application
Presentation service for the Texas security deposit case report.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from depositback.core.config import get_settings
from depositback.core.logging_config import setup_logging
from depositback.routers import documents, intake, report
from depositback.services.report_api import close_report_api_client


# =============================================================================
# Lifespan (Startup/Shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        json_format=settings.log_json_format,
        log_file=Path(settings.log_file) if settings.log_file else None,
    )
    logger = logging.getLogger(__name__)

    Path(settings.download_dir).mkdir(parents=True, exist_ok=True)
    logger.info(
        "%s %s starting (backend %s, documents kept %dh)",
        settings.app_name,
        settings.app_version,
        settings.api_base_url,
        settings.document_retention_hours,
    )

    yield

    await close_report_api_client()
    logger.info("%s stopped", settings.app_name)


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.enable_docs else None,
        redoc_url="/api/redoc" if settings.enable_docs else None,
        openapi_url="/api/openapi.json" if settings.enable_docs else None,
    )

    # CORS; the report and documents endpoints forward the session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        import uuid
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    @app.get("/health", tags=["Health"])
    async def health():
        return {
            "status": "ok",
            "app": settings.app_name,
            "version": settings.app_version,
        }

    app.include_router(report.router)
    app.include_router(documents.router)
    app.include_router(intake.router)

    return app


app = create_app()
