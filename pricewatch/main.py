"""
PriceWatch - Price Tracking Service
Main FastAPI Application
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pricewatch.config import settings
from pricewatch.database import SessionLocal, create_tables, health_check as db_health_check
from pricewatch.routers import alerts
from pricewatch.schemas import HealthCheck
from pricewatch.services.alert_store import SqlAlertStore
from pricewatch.services.notifier import build_notifier
from pricewatch.services.price_fetcher import ScraperRegistry
from pricewatch.services.scheduler import ReconciliationWorker, SweepScheduler
from pricewatch.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    create_tables()
    logger.info("Database tables verified/created")

    # Raises RegistryConfigError on drift, before anything is scheduled
    registry = ScraperRegistry.build(config=settings)
    worker = ReconciliationWorker(
        store=SqlAlertStore(SessionLocal),
        registry=registry,
        notifier=build_notifier(settings),
        item_delay=settings.SWEEP_ITEM_DELAY_SECONDS,
    )
    scheduler = SweepScheduler(worker, settings)

    app.state.registry = registry
    app.state.worker = worker
    app.state.scheduler = scheduler

    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Scheduler disabled; sweeps run only on demand")

    yield

    await scheduler.stop()
    # a manual sweep may still hold the scrapers' clients
    await worker.wait_idle()
    await registry.aclose()
    logger.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Price tracking for Myntra, Flipkart, Ajio and Tata CLiQ with drop alerts",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    if request.url.path != "/health":
        logger.debug(
            "%s %s -> %s (%.2fms)",
            request.method, request.url.path, response.status_code, process_time,
        )

    response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
    return response


# Include routers
app.include_router(alerts.router, prefix="/api/v1")


@app.get("/health", response_model=HealthCheck, tags=["System"])
async def health_check(request: Request):
    """Health check endpoint for monitoring"""
    db_status = "connected" if db_health_check() else "disconnected"

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_status = "running" if scheduler and scheduler.is_running() else "stopped"

    registry = getattr(request.app.state, "registry", None)

    return HealthCheck(
        status="healthy" if db_status == "connected" else "degraded",
        version=settings.APP_VERSION,
        database=db_status,
        scheduler=scheduler_status,
        platforms=registry.platforms() if registry else [],
        timestamp=datetime.now(timezone.utc),
    )


@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API info"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


def run():
    import uvicorn

    uvicorn.run("pricewatch.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
