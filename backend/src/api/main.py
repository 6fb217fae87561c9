"""
CodeShift - FastAPI Application
===============================

Application factory with routers, middleware and lifecycle hooks.
"""

from contextlib import asynccontextmanager
from typing import Annotated, AsyncGenerator

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.api import auth, prompts
from src.api.deps import DbSession, close_oracle
from src.core.cache import SessionCache, get_cache
from src.core.config import settings
from src.core.database import close_db, init_db
from src.core.log_config import configure_logging
from src.core.schemas import ErrorResponse, HealthResponse

configure_logging()

logger = structlog.get_logger()


# ==========================================================================
# Lifespan
# ==========================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: create tables.
    Shutdown: dispose of the engine and close the outbound clients.
    """
    logger.info("Starting CodeShift", version=settings.APP_VERSION)

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down CodeShift")
    await close_db()
    await get_cache().close()
    await close_oracle()
    logger.info("Connections closed")


# ==========================================================================
# App Factory
# ==========================================================================

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Natural-language code modification service",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        detail = str(exc) if settings.is_development else "An unexpected error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=detail,
                code="INTERNAL_ERROR",
            ).model_dump(),
        )

    # ==========================================================================
    # Routers
    # ==========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    async def health_check(
        db: DbSession,
        cache: Annotated[SessionCache, Depends(get_cache)],
    ) -> HealthResponse:
        """Report database and Redis reachability."""
        try:
            await db.execute(text("SELECT 1"))
            database = "connected"
        except Exception as e:
            logger.warning("health_database_unreachable", error=str(e))
            database = "unavailable"

        redis_state = "connected" if await cache.ping() else "unavailable"

        return HealthResponse(
            status="healthy" if database == "connected" else "degraded",
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            database=database,
            redis=redis_state,
        )

    app.include_router(auth.router, prefix=settings.API_V1_PREFIX)
    app.include_router(prompts.router, prefix=settings.API_V1_PREFIX)

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        """Service name and where the routes live."""
        prefix = settings.API_V1_PREFIX
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "health": "/health",
            "auth": f"{prefix}/auth",
            "prompts": f"{prefix}/prompts",
            "docs": "/docs" if settings.is_development else None,
        }

    return app


# ==========================================================================
# Application Instance
# ==========================================================================

app = create_app()


# ==========================================================================
# Development Server
# ==========================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level="info",
    )
