"""
App Operator — Intent API

FastAPI entrypoint: App install/uninstall routes under /api/apps, rate
limiting, Prometheus scrape endpoint and a liveness probe. Operator errors
escaping a route become JSON errors with a status matching their cause.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app_operator import __version__
from app_operator.config import settings
from app_operator.errors import AppOperatorError, ConfigError, PersistenceError
from intent_api.models import ErrorResponse
from intent_api.routers.apps import limiter, router as apps_router, update_gauges

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("intent-api")

# most specific class first
ERROR_STATUS = (
    (ConfigError, 400),
    (PersistenceError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Intent API serving {settings.CRD_KIND} resources ({settings.api_version})")
    yield


app = FastAPI(
    title="App Operator API",
    description="Create, inspect and delete App resources reconciled by the app operator",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.include_router(apps_router, prefix="/api")


@app.exception_handler(AppOperatorError)
async def operator_error_handler(request: Request, exc: AppOperatorError):
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    logger.warning(f"{request.method} {request.url.path} -> {status}: {exc}")
    body = ErrorResponse(detail=str(exc), code=type(exc).__name__)
    return JSONResponse(status_code=status, content=body.model_dump())


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "operator": settings.OPERATOR_NAME,
        "version": __version__,
    }


@app.get("/metrics")
async def metrics():
    update_gauges()
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT, log_level=settings.LOG_LEVEL.lower())
