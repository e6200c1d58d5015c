"""
FastAPI application for the RUNE deal pipeline.

JSON-only HTTP surface over document intake, job polling, orchestration and
deals. Configuration comes from environment variables via utils.config.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rune.errors import NotFoundError, RuneError, ValidationError
from rune.services import RuneServices, build_services
from utils.config import Config
from web.pipeline_routes import router as pipeline_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def configure_logging(level: str) -> None:
    """Root logging for the service process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    config: Optional[Config] = None,
    services: Optional[RuneServices] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration (loaded from the environment if None)
        services: Pre-built service container, mainly for tests
    """
    config = config or (services.config if services else Config.load())
    configure_logging(config.log_level)

    app = FastAPI(
        title="RUNE Deal Pipeline",
        description="Document intake, extraction, DQI scoring and deal creation",
        version=VERSION,
        debug=config.debug,
    )

    # ==========================================================================
    # Healthcheck endpoints are registered first. No dependencies, no IO.
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {"status": "healthy"}

    @app.get("/api/health")
    def api_health():
        """Health check with service version."""
        return {"status": "healthy", "version": VERSION}

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    # ==========================================================================
    # Error mapping
    # ==========================================================================
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        payload = {"error": str(exc)}
        # Job polls report the miss as an error state
        if exc.resource.endswith("job"):
            payload = {"state": "error", **payload}
        return JSONResponse(status_code=404, content=payload)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        logger.info("Rejected upload on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RuneError)
    async def pipeline_error_handler(request: Request, exc: RuneError):
        logger.error("Pipeline error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    app.state.services = services or build_services(config)
    app.include_router(pipeline_router)

    logger.info("RUNE Deal Pipeline ready (version %s)", VERSION)
    return app


# Create app instance for uvicorn
app = create_app()
