#!/usr/bin/env python3
"""
Repository Preview Service - Main FastAPI Application

Application entry point.
"""

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Add the backend directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
backend_dir = os.path.dirname(current_dir)

if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

# Import application configurations and components
from repo_preview.config import ServerConfig, get_settings
from repo_preview.config.logging_config import LoggingConfig
from repo_preview.core.preview import PreviewReaper
from repo_preview.utils.exceptions import register_exception_handlers
from repo_preview.service.preview_service import get_preview_service

# Import API routers
from repo_preview.api import preview_router

# Initialize logging
LoggingConfig().setup_logging()

# Initialize logger (after logging setup)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle

    Starts the expired-preview reaper when enabled and stops it on shutdown.
    Running previews are left alone on shutdown.
    """
    # Startup
    logger.info("=" * 80)
    logger.info("Starting Repository Preview Service...")
    logger.info("=" * 80)

    settings = get_settings()
    reaper: Optional[PreviewReaper] = None
    if settings.preview_reaper_enabled:
        try:
            reaper = PreviewReaper(
                get_preview_service().orchestrator,
                interval_seconds=settings.preview_reaper_interval,
            )
            await reaper.start()
        except Exception as e:
            logger.error(f"Preview reaper failed to start: {e}")
            reaper = None
    else:
        logger.info("Preview reaper disabled; expiresAt is advisory")

    logger.info("Application startup complete")
    logger.info(f"Server URL: http://{ServerConfig.HOST}:{ServerConfig.PORT}")
    logger.info(f"Documentation: http://{ServerConfig.HOST}:{ServerConfig.PORT}/docs")
    logger.info(f"Health Check: http://{ServerConfig.HOST}:{ServerConfig.PORT}/health")
    logger.info("=" * 80)

    yield

    # Shutdown
    logger.info("Shutting down application...")

    if reaper is not None:
        try:
            await reaper.stop()
        except Exception as e:
            logger.error(f"Error stopping preview reaper: {e}")

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Repository Preview Service",
        version="1.0.0",
        description="Ephemeral containerized previews of GitHub repositories",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add CORS middleware (must be first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ServerConfig.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register global exception handlers
    register_exception_handlers(app)

    # Include routers with /api prefix
    app.include_router(preview_router, prefix="/api")

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


def run_api(host: str, port: int, **kwargs):
    """
    Run the API server with the given configuration
    """
    try:
        uvicorn.run(
            "repo_preview.main:app",
            host=host,
            port=port,
            reload=kwargs.get("reload") or ServerConfig.RELOAD
        )
    except Exception as e:
        logger.error(f"Failed to start API server: {e}")
        raise


def main() -> None:
    """
    Console entry point
    """
    parser = argparse.ArgumentParser(prog='repo-preview',
                                     description='Repository Preview Server')
    parser.add_argument("--host", type=str, default=ServerConfig.HOST)
    parser.add_argument("--port", type=int, default=ServerConfig.PORT)
    parser.add_argument("--reload", action="store_true", default=ServerConfig.RELOAD)

    args = parser.parse_args()

    try:
        logger.info("=" * 80)
        logger.info("Starting Repository Preview Server...")
        logger.info("=" * 80)
        logger.info(f"  - Server URL: http://{args.host}:{args.port}")
        logger.info(f"  - Documentation: http://{args.host}:{args.port}/docs")
        logger.info(f"  - Health Check: http://{args.host}:{args.port}/health")
        logger.info("=" * 80)

        run_api(
            host=args.host,
            port=args.port,
            reload=args.reload
        )
    except KeyboardInterrupt:
        logger.info("\nShutting down Repository Preview Server gracefully...")
    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        sys.exit(1)


# Create the app instance
app = create_app()

if __name__ == "__main__":
    main()
