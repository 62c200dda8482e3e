"""FastAPI application entry point."""
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from juno.api.routes import router
from juno.config import settings
from juno.database import init_db
from juno.middleware.rate_limit import RateLimitMiddleware

# Configure logging at startup
logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
})

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Juno CRM starting up (environment=%s)", settings.environment)
    try:
        init_db()
        logger.info("Database ready")
    except Exception as e:
        # Server must still bind so /health answers
        logger.warning("Database init failed (server will start anyway): %s", e)
    logger.info(
        "Integrations: stripe=%s twilio=%s vapi=%s resend=%s storage=%s",
        settings.stripe_enabled, settings.twilio_enabled, settings.vapi_enabled,
        settings.resend_enabled, settings.storage_enabled,
    )
    yield
    logger.info("Juno CRM shutting down")


app = FastAPI(
    title="Juno CRM",
    description="Multi-tenant CRM: organizations, customers, teams, prepaid credits and billing.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute_ip=settings.rate_limit_requests_per_minute_ip,
    requests_per_minute_user=settings.rate_limit_requests_per_minute_user,
    exempt_paths=["/health", "/api/stripe/webhooks", "/api/cron"],
)

app.include_router(router, prefix="/api")


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "ok"}
