"""
FacilityOps Ticketing - Main Application
========================================

Multi-tenant facility-management ticketing backbone.

Modules:
- Tickets: lifecycle state machine, activity log, history export
- Dispatch: resolver selection and waitlist reconciliation
- Shifts: resolver check-in/check-out
- Notifications: fan-out, dedup, real-time push
- SLA: pause-aware timers, breach scan, grace-period close
- Dashboards: per-role read models

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, state machine
- Infrastructure: Database, in-memory store, real-time channel, Slack
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from facilityops.config import settings

# Infrastructure
from facilityops.infrastructure.database import close_database, create_tables, init_database
from facilityops.infrastructure.memory import InMemoryStore
from facilityops.infrastructure.realtime import RealtimeBroker

# SLA Module - External services
from facilityops.sla.infrastructure import SLAConfigManager, SlackClient, SLAScheduler

# Shared API
from facilityops.shared.api.dependencies import AppContext, open_services
from facilityops.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.resilience import retry_with_backoff

# Module Routers
from facilityops.dashboards.interfaces import dashboards_router
from facilityops.dispatch.interfaces import dispatch_router
from facilityops.notifications.interfaces import notifications_router
from facilityops.shifts.interfaces import shifts_router
from facilityops.sla.interfaces import sla_router
from facilityops.tickets.interfaces import tickets_router

# Logging
from facilityops.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


# === Scheduled SLA jobs ===

async def run_breach_scan(ctx: AppContext) -> None:
    """Background breach scan, retried while the store is unavailable."""
    async def scan():
        async with open_services(ctx) as services:
            return await services.breach_scanner().scan()

    try:
        await retry_with_backoff(scan, "sla.breach_scan")
    except Exception:
        logger.exception("SLA breach scan failed")


async def run_grace_period_close(ctx: AppContext) -> None:
    """Background close of long-resolved tickets."""
    async def close_expired():
        async with open_services(ctx) as services:
            return await services.grace_closer().close_expired()

    try:
        await retry_with_backoff(close_expired, "sla.grace_close")
    except Exception:
        logger.exception("Grace-period close failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables (sql backend)
    3. Watch SLA configuration
    4. Start SLA scheduler

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Stop config watcher
    3. Close Slack client
    4. Close database connections
    """
    ctx: AppContext = app.state.context

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting FacilityOps", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "store_backend": ctx.store_backend
    })

    if ctx.store_backend == "sql":
        logger.info("Initializing database")
        init_database()
        # Production should use migrations (Alembic)
        await create_tables()

    ctx.sla_config.start_watching()

    scheduler: Optional[SLAScheduler] = None
    if settings.sla_evaluation_interval > 0:
        scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)

        async def breach_scan_job():
            await run_breach_scan(ctx)

        async def grace_period_job():
            await run_grace_period_close(ctx)

        await scheduler.start({
            "sla_breach_scan": breach_scan_job,
            "resolved_grace_close": grace_period_job,
        })
    app.state.scheduler = scheduler

    logger.info("FacilityOps started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down FacilityOps")

    if scheduler:
        await scheduler.stop()

    ctx.sla_config.stop_watching()

    if ctx.slack is not None:
        await ctx.slack.close()

    if ctx.store_backend == "sql":
        await close_database()

    logger.info("FacilityOps shutdown complete")


def create_app(
    store_backend: Optional[str] = None,
    clock: Clock = utcnow,
    sla_config: Optional[SLAConfigManager] = None,
    store: Optional[InMemoryStore] = None,
) -> FastAPI:
    """Build the application. Tests pass the memory backend and a frozen clock."""
    backend = store_backend or settings.store_backend

    if sla_config is None:
        sla_config = SLAConfigManager()
        sla_config.load(settings.sla_config_path)

    slack = SlackClient()
    context = AppContext(
        store_backend=backend,
        broker=RealtimeBroker(settings.realtime_queue_size),
        sla_config=sla_config,
        clock=clock,
        store=(store or InMemoryStore()) if backend == "memory" else None,
        slack=slack if slack.enabled else None,
    )

    app = FastAPI(
        title="FacilityOps Ticketing API",
        description="""
        ## Facility-Management Ticketing Backbone

        Tickets move through `waitlist/open -> assigned -> in_progress -> resolved -> closed`,
        with `paused` (stops the SLA clock) and `blocked` (does not) side states.

        Actor identity comes from the upstream auth layer in the
        `X-Actor-Id` and `X-Actor-Role` headers.

        **SLA breach thresholds (hours, configurable in `sla_config.yaml`):**

        | Priority | Hours |
        |----------|-------|
        | Critical | 2     |
        | High     | 4     |
        | Medium   | 24    |
        | Low      | 72    |
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.context = context
    app.state.scheduler = None

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    register_exception_handlers(app)

    # === Include Module Routers ===
    app.include_router(tickets_router)
    app.include_router(dispatch_router)
    app.include_router(shifts_router)
    app.include_router(notifications_router)
    app.include_router(sla_router)
    app.include_router(dashboards_router)

    # === Health Check Endpoint ===

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "store": "sql",
                            "sla_config": "loaded",
                            "sla_config_watch": "watching",
                            "sla_scheduler": "running",
                            "slack": "not_configured"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        ctx: AppContext = request.app.state.context
        scheduler = request.app.state.scheduler
        checks = {
            "store": ctx.store_backend,
            "sla_config": "loaded",
            "sla_config_watch": "watching" if ctx.sla_config.is_watching else "static",
            "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "slack": "configured" if ctx.slack else "not_configured",
        }
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "FacilityOps Ticketing",
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "tickets": "/tickets",
                "dispatch": "/dispatch",
                "shifts": "/shifts",
                "notifications": "/notifications",
                "sla": "/sla",
                "dashboard": "/dashboard"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "facilityops.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
