"""
FastAPI Application

Main entry point for the Storefront CRM Analytics API.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from crm_analytics.aggregation.service import DashboardService
from crm_analytics.config import get_settings
from crm_analytics.config.logging import configure_logging
from crm_analytics.data.generators import DemoDataGenerator
from crm_analytics.database.connection import close_database, init_database
from crm_analytics.errors import EmptyExportError, SourceFetchError, UnknownReportError
from crm_analytics.realtime.change_feed import ChangeFeed, InMemoryChangeFeed, KafkaChangeFeed
from crm_analytics.realtime.controller import RecomputationController
from crm_analytics.reporting.export import ReportExporter
from crm_analytics.serving.api.middleware import RequestLoggingMiddleware
from crm_analytics.serving.api.routes import crm_router, health_router
from crm_analytics.sources.base import ReportDataSource
from crm_analytics.sources.database import DatabaseDataSource

logger = structlog.get_logger(__name__)


async def _default_source() -> ReportDataSource:
    settings = get_settings()
    if settings.data_source == "memory":
        logger.info("Using generated demo data")
        return DemoDataGenerator().generate_all().to_source()

    try:
        await init_database()
    except Exception as e:
        # Requests fail with 503 until the database is reachable
        logger.warning("Database init failed", error=str(e))
    return DatabaseDataSource()


def _default_feed() -> ChangeFeed:
    if get_settings().kafka.enabled:
        return KafkaChangeFeed()
    return InMemoryChangeFeed()


def create_app(
    source: Optional[ReportDataSource] = None,
    change_feed: Optional[ChangeFeed] = None,
    configure_logs: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        source: Report data source; chosen from settings when omitted
        change_feed: Table change feed; Kafka or in-memory from settings when omitted
        configure_logs: Install the structlog configuration on startup

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logs:
            configure_logging()
        logger.info("Starting Storefront CRM Analytics API", data_source=settings.data_source)

        data_source = source or await _default_source()
        feed = change_feed or _default_feed()

        service = DashboardService(data_source)
        controller = RecomputationController(service)
        controller.attach(feed)

        app.state.service = service
        app.state.controller = controller
        app.state.exporter = ReportExporter()
        app.state.change_feed = feed

        await feed.start()
        await controller.start()

        yield

        logger.info("Shutting down...")
        await controller.close()
        await feed.stop()
        await data_source.close()
        if source is None:
            await close_database()

    app = FastAPI(
        title="Storefront CRM Analytics API",
        description="CRM dashboard metrics, report views and exports",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(UnknownReportError)
    async def unknown_report_handler(request: Request, exc: UnknownReportError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(EmptyExportError)
    async def empty_export_handler(request: Request, exc: EmptyExportError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(SourceFetchError)
    async def source_fetch_handler(request: Request, exc: SourceFetchError):
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "collections": list(exc.collections)},
        )

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(crm_router, prefix="/api/v1/crm", tags=["CRM"])
    app.mount("/metrics", make_asgi_app())

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "data_source": settings.data_source,
        }

    return app


app = create_app()
