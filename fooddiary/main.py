"""
Food Diary API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Initialise DB connection pool
  3. Create tables if not present
  4. Connect to Redis (exposure history ledger)
  5. Start the background exposure recorder
  6. Expose Prometheus /metrics endpoint

Shutdown waits for in-flight exposure writes before closing Redis.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from fooddiary.config import settings
from fooddiary.database import engine, init_db
from fooddiary.dependencies import get_recorder, init_recorder
from fooddiary.errors import AppError, app_error_handler
from fooddiary.telemetry import setup_tracing, instrument_app
from fooddiary.clients.redis_client import close_redis, init_redis
from fooddiary.routers import feed, foods, reviews, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Food Diary API (env=%s)", settings.environment)

    await init_db()
    await init_redis()
    init_recorder()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    recorder = get_recorder()
    if recorder.pending:
        logger.info("Waiting for %d exposure writes", recorder.pending)
    await recorder.drain()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Food Diary API",
    description=(
        "Meal diary with a diversity-aware daily food feed and weekly "
        "progress tracking."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(AppError, app_error_handler)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(foods.router, prefix="/foods", tags=["Foods"])
app.include_router(feed.router, prefix="/feed", tags=["Feed"])
app.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
