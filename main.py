"""
Main FastAPI application (entrypoint).

Responsibilities:
- Wire API routers (journey / admin / passenger)
- Register centralized exception handlers
- Provide middleware: request-id logging, simple rate limiting
- Add health / readiness endpoints
- Own process-wide resources: DB engine, Redis, RabbitMQ; created on
  startup, closed on shutdown
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import logging
import uvicorn

from api import routes_admin, routes_journey, routes_passenger
from config.settings import settings
from core import db
from core.exception_handlers import register_exception_handlers
from core.logging import configure_logging, request_logging_middleware
from core.rate_limiter import RateLimiterMiddleware
from core.response import error, ok
from infra.rabbitmq_client import rabbitmq_client
from infra.redis_client import redis_client
from models import db_models  # noqa: F401 register tables on Base.metadata
from services.notification_service import notification_service

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.API_TITLE, version=settings.API_VERSION)

# CORS - adjust origins for production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes_journey.router, tags=["journey"])
app.include_router(routes_admin.bus_router, tags=["bus"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(routes_passenger.router, prefix="/passenger", tags=["passenger"])

register_exception_handlers(app)

app.middleware("http")(request_logging_middleware)
app.add_middleware(RateLimiterMiddleware, calls=settings.RATE_LIMIT_CALLS, per_seconds=settings.RATE_LIMIT_PERIOD)


@app.get("/health")
async def health():
    """Simple health endpoint used by load balancers and orchestrators."""
    return ok({"status": "ok"})


@app.get("/ready")
async def ready():
    """Readiness: check DB connectivity if configured."""
    if not (settings.USE_DB and db.engine is not None):
        return ok({"ready": True, "store": "memory"})
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return ok({"ready": True, "store": "db"})
    except Exception as e:
        logger.warning("Readiness check failed: %s", e)
        return JSONResponse(status_code=503, content=error(code="db_unreachable", message="DB unavailable"))


@app.on_event("startup")
async def on_startup():
    """
    On startup:
    - Create DB tables (development convenience). In production run Alembic migrations.
    """
    if not settings.USE_DB:
        logger.info("USE_DB is off; journeys are kept in memory")
        return
    engine = db.init_engine()
    if engine is None:
        return
    try:
        async with engine.begin() as conn:
            await conn.run_sync(db.Base.metadata.create_all)
    except Exception as e:
        # Do not crash the process for missing DB during local dev; /ready reports it
        logger.warning("DB initialization failed on startup: %s", e)


@app.on_event("shutdown")
async def on_shutdown():
    await notification_service.drain()
    await rabbitmq_client.disconnect()
    await redis_client.disconnect()
    await db.dispose_engine()
    logger.info("Shutdown complete")


if __name__ == "__main__":
    # Run with: python main.py for local dev. For production use uvicorn/gunicorn with workers.
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
