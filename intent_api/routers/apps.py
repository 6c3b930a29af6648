"""
App API routes — install/uninstall endpoints for App resources.

Features:
  - Identity layer: X-User-Id header recorded in the audit log
  - Rate limiting per-IP via slowapi
  - Prometheus metrics exposition
  - Audit logging (in-memory ring buffer)
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from collections import deque

from fastapi import APIRouter, HTTPException, Query, Request
from prometheus_client import Counter, Gauge
from slowapi import Limiter
from slowapi.util import get_remote_address

from app_operator.config import settings
from app_operator.errors import AppOperatorError, ConfigError
from intent_api.models import (
    AppCreateRequest, AppResponse, AppListResponse,
    ErrorResponse, AuditLogEntry,
)
from intent_api.services.kubernetes_service import (
    list_apps, get_app, install_app, uninstall_app, count_apps_by_phase,
)

logger = logging.getLogger("apps")

router = APIRouter(prefix="/apps", tags=["apps"])
limiter = Limiter(key_func=get_remote_address)

# --- Audit log (in-memory ring buffer) ---
_audit_log: deque[dict] = deque(maxlen=50)


def _audit(action: str, app: str, result: str, detail: str = "", user_id: str = "anonymous"):
    entry = AuditLogEntry(
        timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        action=action,
        app=app,
        user_id=user_id,
        result=result,
        detail=detail,
    )
    _audit_log.append(entry.model_dump())
    logger.info(f"AUDIT: {action} {app} by {user_id} -> {result}")


def _get_user_id(request: Request) -> str:
    """Extract user identity from X-User-Id header, 'anonymous' if absent."""
    return request.headers.get("x-user-id", "anonymous")


# --- Prometheus metrics ---
APPS_INSTALLED = Counter(
    "app_operator_api_installs_total",
    "App install requests by result",
    ["result"],
)
APPS_UNINSTALLED = Counter(
    "app_operator_api_uninstalls_total",
    "App uninstall requests accepted",
)
API_FAILURES = Counter(
    "app_operator_api_failures_total",
    "Failed App API operations",
)
APPS_TOTAL = Gauge(
    "app_operator_apps_total",
    "Current App resources",
    ["phase"],
)


def update_gauges():
    """Refresh the per-phase gauge; a scrape still succeeds when the API server is unreachable."""
    try:
        counts = count_apps_by_phase()
    except Exception as e:
        logger.warning(f"Failed to refresh app gauges: {e}")
        return
    for phase in ("Applied", "Failed", "Unknown"):
        APPS_TOTAL.labels(phase=phase).set(counts.get(phase, 0))


# =========================================================================
# REST Endpoints
# =========================================================================

@router.get("/audit/log")
@limiter.limit(settings.RATE_LIMIT)
async def get_audit_log(request: Request):
    """Get the API audit log (last 50 entries)."""
    return {"entries": list(_audit_log), "count": len(_audit_log)}


@router.post("", response_model=AppResponse, status_code=201,
             responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse},
                        503: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def install_app_endpoint(req: AppCreateRequest, request: Request):
    """Install an App. Idempotent: an existing App is updated (or kept with once=true)."""
    user_id = _get_user_id(request)
    key = f"{req.namespace}/{req.name}"
    try:
        app, result = install_app(req)
    except (ValueError, ConfigError) as e:
        _audit("INSTALL", key, "REJECTED", str(e), user_id)
        raise HTTPException(status_code=400, detail=str(e))
    except AppOperatorError as e:
        _audit("INSTALL", key, "FAILED", str(e), user_id)
        API_FAILURES.inc()
        logger.warning(f"Cannot install app {key}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        _audit("INSTALL", key, "FAILED", str(e), user_id)
        API_FAILURES.inc()
        logger.error(f"Failed to install app {key}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to install app: {str(e)}")
    _audit("INSTALL", key, result, user_id=user_id)
    APPS_INSTALLED.labels(result=result).inc()
    return app


@router.get("", response_model=AppListResponse)
@limiter.limit(settings.RATE_LIMIT)
async def list_apps_endpoint(
    request: Request,
    namespace: Optional[str] = Query(None, description="Filter by namespace"),
):
    """List all Apps, optionally in a single namespace."""
    apps = list_apps(namespace=namespace)
    return AppListResponse(apps=apps, total=len(apps))


@router.get("/{namespace}/{name}", response_model=AppResponse,
            responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_app_endpoint(namespace: str, name: str, request: Request):
    """Get a specific App."""
    app = get_app(namespace, name)
    if not app:
        raise HTTPException(status_code=404, detail=f"App '{namespace}/{name}' not found")
    return app


@router.delete("/{namespace}/{name}", status_code=202,
               responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def uninstall_app_endpoint(namespace: str, name: str, request: Request):
    """Uninstall an App. Returns 202 Accepted: the operator tears the release down."""
    user_id = _get_user_id(request)
    deleted = uninstall_app(namespace, name)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"App '{namespace}/{name}' not found")
    _audit("UNINSTALL", f"{namespace}/{name}", "ACCEPTED", user_id=user_id)
    APPS_UNINSTALLED.inc()
    return {"message": f"App '{namespace}/{name}' deletion initiated", "status": "accepted"}
