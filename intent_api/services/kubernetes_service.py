"""
App service layer — create, update, read and delete App resources for the API.

Design principles:
  - Idempotent: installing an existing App updates it in place (or, with
    ``once``, returns it untouched)
  - Operator-owned fields survive updates: finalizers, the checksum
    annotation and status are never overwritten from a request
  - Clean error handling: invalid options raise ValueError (HTTP 400)
"""

import logging
from typing import Optional, Tuple

from app_operator.checksum import OPTION_CHECKSUM
from app_operator.config import settings
from app_operator.kube import KubeStore
from app_operator.models import AppResource
from app_operator.values import compose_values

from intent_api.models import AppCreateRequest, AppResponse

logger = logging.getLogger("kubernetes_service")

_store = None


def _get_store() -> KubeStore:
    global _store
    if _store is None:
        _store = KubeStore(settings)
    return _store


def option_annotations(options: dict) -> dict:
    """Map {option: value} onto reserved '<operator>/<option>' annotations."""
    annotations = {}
    for name, value in options.items():
        if not name or "/" in name:
            raise ValueError(f"Invalid option name {name!r}")
        if name == OPTION_CHECKSUM:
            raise ValueError(f"Option {name!r} is managed by the operator")
        annotations[settings.annotation(name)] = value
    return annotations


def _to_response(app: AppResource) -> AppResponse:
    prefix = f"{settings.OPERATOR_NAME}/"
    options = {
        k[len(prefix):]: v for k, v in app.annotations.items()
        if k.startswith(prefix) and k != settings.annotation(OPTION_CHECKSUM)
    }
    return AppResponse(
        name=app.name,
        namespace=app.namespace,
        phase=app.status.phase.value,
        reason=app.status.reason,
        message=app.status.message,
        release=app.status.release,
        lastUpdated=app.status.lastUpdated,
        deleting=app.deleting,
        finalized=settings.finalizer in app.finalizers,
        options=options,
        spec=app.spec,
    )


def list_apps(namespace: Optional[str] = None) -> list[AppResponse]:
    """List App resources, in one namespace or across the cluster."""
    return [_to_response(a) for a in _get_store().list_apps(namespace)]


def get_app(namespace: str, name: str) -> Optional[AppResponse]:
    app = _get_store().get_app(namespace, name)
    return _to_response(app) if app else None


def install_app(req: AppCreateRequest) -> Tuple[AppResponse, str]:
    """
    Create the App, or update spec/options/labels of an existing one.

    Returns (app, result) where result is CREATED, UPDATED or UNCHANGED.
    """
    store = _get_store()
    annotations = option_annotations(req.options)
    spec = compose_values(req.spec, settings.VALUE_FILES)

    existing = store.get_app(req.namespace, req.name)
    if existing is None:
        app = AppResource(
            api_version=settings.api_version,
            kind=settings.CRD_KIND,
            name=req.name,
            namespace=req.namespace,
            labels=dict(req.labels),
            annotations=annotations,
            spec=spec,
        )
        created = store.create_app(app)
        logger.info(f"App {app.key} installed")
        return _to_response(created), "CREATED"

    if req.once:
        logger.info(f"App {existing.key} exists, leaving it untouched (once)")
        return _to_response(existing), "UNCHANGED"

    updated = existing.model_copy(deep=True)
    updated.spec = spec
    updated.labels.update(req.labels)
    updated.annotations.update(annotations)
    result = store.replace_app(updated)
    logger.info(f"App {existing.key} updated")
    return _to_response(result), "UPDATED"


def uninstall_app(namespace: str, name: str) -> bool:
    """Delete an App. Returns True if deleted, False if not found."""
    return _get_store().delete_app(namespace, name)


def count_apps_by_phase() -> dict:
    """Count Apps grouped by phase."""
    apps = list_apps()
    counts = {"total": len(apps), "Applied": 0, "Failed": 0, "Unknown": 0}
    for a in apps:
        if a.phase in counts:
            counts[a.phase] += 1
    return counts
