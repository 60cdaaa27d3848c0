"""
Doctor Dashboard Service
Controller/Service/Repository Pattern
"""

import logging
from logging.handlers import RotatingFileHandler
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from doctor_dashboard.core.cache import CacheManager
from doctor_dashboard.core.config import ApplicationConfig, LoggingConfig, get_config
from doctor_dashboard.core.database import DatabaseManager
from doctor_dashboard.core.exceptions import register_exception_handlers

# Import domain controllers
from doctor_dashboard.domains.patient.controllers.patient_controller import router as patient_router
from doctor_dashboard.domains.records.controllers.record_controller import router as record_router

logger = logging.getLogger(__name__)


def configure_logging(config: LoggingConfig) -> None:
    """Configure root logging once at startup"""
    logging.basicConfig(level=config.level.upper(), format=config.format)

    if config.log_file:
        handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count
        )
        handler.setFormatter(logging.Formatter(config.format))
        logging.getLogger().addHandler(handler)


class DashboardContext:
    """Centralized service context for dependency injection"""

    def __init__(
        self,
        config: Optional[ApplicationConfig] = None,
        db_manager: Optional[DatabaseManager] = None,
        cache_manager: Optional[CacheManager] = None
    ):
        self.config = config or get_config()
        self.db_manager = db_manager or DatabaseManager(self.config.database)
        self.cache_manager = cache_manager or CacheManager(self.config.redis)
        self.start_time = datetime.utcnow()
        self._initialized = False

    async def initialize(self):
        """Initialize all connections and services"""
        if self._initialized:
            return

        logger.info("Initializing Doctor Dashboard context...")

        await self.db_manager.initialize()
        await self.cache_manager.initialize()

        self._initialized = True
        logger.info("Doctor Dashboard context initialized successfully")

    async def cleanup(self):
        """Cleanup all connections"""
        logger.info("Cleaning up Doctor Dashboard context...")

        await self.cache_manager.cleanup()
        await self.db_manager.cleanup()
        self._initialized = False

        logger.info("Cleanup complete")

    async def health(self):
        database = await self.db_manager.health_check()
        cache = await self.cache_manager.health_check()
        healthy = database.get("status") == "healthy" and cache.get("status") in ("healthy", "disabled")
        return {
            "status": "healthy" if healthy else "unhealthy",
            "version": self.config.app_version,
            "database": database,
            "cache": cache,
            "uptime_seconds": (datetime.utcnow() - self.start_time).total_seconds(),
            "timestamp": datetime.utcnow()
        }


def create_app(context: Optional[DashboardContext] = None) -> FastAPI:
    """Build the ASGI application; a pre-built context skips connection setup"""
    config = context.config if context else get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage service lifecycle"""
        # Startup
        logger.info("Starting Doctor Dashboard...")
        app.state.context = context or DashboardContext(config)
        await app.state.context.initialize()
        logger.info("Doctor Dashboard started successfully")

        yield

        # Shutdown
        logger.info("Shutting down Doctor Dashboard...")
        await app.state.context.cleanup()
        logger.info("Doctor Dashboard shutdown complete")

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Doctor-facing patient records service",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_origins,
        allow_credentials=config.security.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include domain routers
    app.include_router(patient_router)
    app.include_router(record_router)

    @app.get("/health")
    async def health_check():
        """Database and cache health"""
        return await app.state.context.health()

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "service": config.app_name,
            "version": config.app_version,
            "pattern": "Controller/Service/Repository",
            "documentation": "/docs",
            "health": "/health"
        }

    return app


def run() -> None:
    """Console entry point"""
    import uvicorn

    config = get_config()
    configure_logging(config.logging)

    uvicorn.run(
        "doctor_dashboard.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        workers=config.workers,
        loop="uvloop",
        log_level=config.logging.level.lower(),
        access_log=False,
        reload=False
    )


if __name__ == "__main__":
    run()
