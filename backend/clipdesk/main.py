"""FastAPI application entry point"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from clipdesk.api import integrations, projects, videos
from clipdesk.core.config import settings
from clipdesk.core.logging import setup_logging
from clipdesk.core.otel import initialize_otel, instrument_database, setup_otel_logging
from clipdesk.db.redis import get_redis_client
from clipdesk.db.session import engine, init_db

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown"""
    if initialize_otel():
        setup_otel_logging()
        logger.info("OpenTelemetry initialized")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        get_redis_client().ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    instrument_database(engine)

    tasks = []
    if settings.BACKGROUND_TASKS_ENABLED:
        from clipdesk.tasks.scheduler import schedule_sweep_task, stats_refresh_task

        logger.info("Starting background tasks...")
        tasks.append(asyncio.create_task(schedule_sweep_task()))
        tasks.append(asyncio.create_task(stats_refresh_task()))
        logger.info("Background tasks started")

    yield

    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()


app = FastAPI(
    title="Clipdesk Backend",
    description="Video content operations: ingestion, targeting, approval and distribution",
    version="1.0.0",
    lifespan=lifespan
)

FastAPIInstrumentor.instrument_app(app)
HTTPXClientInstrumentor().instrument()

allowed_origins = [settings.FRONTEND_URL]
if settings.ENVIRONMENT == "development":
    allowed_origins.extend([
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(projects.router)
app.include_router(videos.router)
app.include_router(integrations.router)
app.include_router(integrations.analytics_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
