"""
Habit Stats Server - Main Application Entry Point
Read-only statistics and streaks over habit logs
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger
import sys
import time

from habitstats.config import get_settings
from habitstats.routes import stats
from habitstats.database import init_supabase


def configure_logging() -> None:
    """Configure loguru once for the whole process"""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all incoming requests"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        logger.info(f"[REQUEST] {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000
        logger.info(f"[RESPONSE] {request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.2f}ms")

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()
    logger.info("Starting Habit Stats Server...")

    if settings.storage_backend == "supabase":
        init_supabase()
        logger.info("Supabase client initialized")
    else:
        logger.info(f"Using {settings.storage_backend} log store")

    yield

    logger.info("Shutting down Habit Stats Server...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    settings = get_settings()
    configure_logging()

    logger.info("=" * 60)
    logger.info("=== HABIT STATS API STARTING ===")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Storage backend: {settings.storage_backend}")
    logger.info("=" * 60)

    app = FastAPI(
        title="Habit Stats API",
        description="Streaks, completion counts and habit scores over daily habit logs, in the Gregorian or Persian calendar.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Request logging middleware (add first so it wraps everything)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    logger.info(f"[CORS] Allowed origins: {', '.join(settings.cors_origins_list)}")

    app.include_router(stats.router, prefix="/api/habits", tags=["Statistics"])
    logger.info("[ROUTES] All routes registered")

    @app.get("/", tags=["Health"])
    async def root():
        """Health check endpoint"""
        return {
            "service": "Habit Stats API",
            "status": "operational"
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check"""
        return {
            "status": "healthy",
            "environment": settings.app_env,
            "storage_backend": settings.storage_backend,
            "version": "1.0.0"
        }

    logger.info("=== HABIT STATS API READY ===")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "habitstats.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
