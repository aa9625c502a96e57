import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from xfunnel.api.v1.router import api_v1_router
from xfunnel.core.config import settings, validate_settings_for_production
from xfunnel.core.logging import setup_logging
from xfunnel.core.metrics import PrometheusMiddleware, metrics_response
from xfunnel.core.middleware import RequestLoggingMiddleware
from xfunnel.core.rate_limit import limiter
from xfunnel.core.sentry import init_sentry
from xfunnel.db.postgres import engine

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    init_sentry()
    logger.info(
        "Starting xFunnel analytics (tz=%s, granularity=%s)",
        settings.report_timezone,
        settings.default_granularity,
    )

    yield

    # Shutdown
    await engine.dispose()
    logger.info("xFunnel analytics shut down")


app = FastAPI(
    title="xFunnel Analytics",
    description="Buying-journey aggregation over analyzed answer-engine responses",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# Log unhandled exceptions with the full traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request logging + Prometheus middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health():
    return {"status": "ok", "timezone": settings.report_timezone}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
