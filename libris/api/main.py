"""
Libris API

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI
from loguru import logger
from sqlalchemy import text

from .schemas import HealthResponse
from .routes import auth, books, logs
from .middleware import (
    setup_cors,
    setup_logging,
    setup_exception_handlers,
    LoggingConfig,
    get_cors_config,
)
from .dependencies import (
    get_settings,
    get_engine,
    init_database,
    create_tables,
    dispose_database,
    Settings,
)

VERSION = "1.0.0"


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the database engine and creates tables on startup, disposes the
    engine on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting Libris in {settings.environment} mode")

    try:
        logger.info("Initializing database...")
        init_database(settings)
        await create_tables()

        logger.info("Libris started successfully")
        yield

    finally:
        logger.info("Shutting down Libris...")
        await dispose_database()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    if settings.environment == "production" and settings.secret_key == Settings.secret_key:
        raise RuntimeError("SECRET_KEY must be set in production")

    app = FastAPI(
        title="Libris",
        description="Personal book catalogue with per-user activity history.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ==========================================================================
    # Middleware (order matters - last added = outermost)
    # ==========================================================================

    setup_logging(
        app,
        config=LoggingConfig(
            enabled=True,
            log_request_body=settings.debug,
        ),
        structured=settings.environment not in ("development", "test"),
    )

    setup_exception_handlers(app)

    setup_cors(app, config=get_cors_config(settings.environment))

    # ==========================================================================
    # Routers
    # ==========================================================================

    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(books.router, prefix=settings.api_prefix)
    app.include_router(logs.router, prefix=settings.api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Libris",
            "version": VERSION,
            "status": "running",
            "endpoints": {
                "auth": f"{settings.api_prefix}/auth",
                "books": f"{settings.api_prefix}/books",
                "logs": f"{settings.api_prefix}/logs",
            },
            "docs": "/docs" if settings.debug else None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            database = "connected"
        except Exception as e:
            logger.warning(f"Health check database probe failed: {type(e).__name__}")
            database = "unavailable"

        return HealthResponse(
            status="healthy" if database == "connected" else "degraded",
            version=VERSION,
            database=database,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "libris.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
