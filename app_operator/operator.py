"""
App Operator — Kubernetes Operator that turns App resources into Helm releases.

Architecture:
  App CRD → kopf raw event watch → Reconciler.handle (one event at a time):
    1. Checksum gate: skip events that change nothing relevant
    2. pre-install hook → compose values → resolve chart → helm install/upgrade
    3. Add finalizer, record checksum + release status → post-install hook

  On Delete (deletionTimestamp + our finalizer):
    1. pre-uninstall hook → helm uninstall
    2. Remove finalizer → post-uninstall hook

  Resync:
    kopf re-lists every RESYNC_PERIOD seconds; unchanged Apps are no-ops.

Run with:  kopf run -m app_operator.operator [--namespace NS | --all-namespaces]
"""

import logging

import kopf

from .behavior import Behavior
from .config import settings as operator_settings
from .errors import AppOperatorError
from .handler import Outcome, Reconciler
from .helm import HelmReleaseEngine
from .kube import KubeStore, ensure_crd
from .models import AppResource
from .values import ClusterValues

logger = logging.getLogger("app-operator")

_reconciler = None


def build_reconciler(cfg=operator_settings) -> Reconciler:
    """Wire the production collaborators: Helm CLI, Kubernetes store, cluster values."""
    store = KubeStore(cfg)
    behavior = Behavior(
        release_values=ClusterValues(store, cfg.VALUE_FILES),
        logger=lambda app: logging.getLogger("app-operator.helm"),
    )
    return Reconciler(cfg, HelmReleaseEngine(cfg), store, behavior)


def get_reconciler() -> Reconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = build_reconciler()
    return _reconciler


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **kwargs):
    cfg = operator_settings
    settings.posting.enabled = True
    settings.execution.max_workers = cfg.MAX_WORKERS
    if cfg.RESYNC_PERIOD > 0:
        settings.watching.server_timeout = cfg.RESYNC_PERIOD
    if cfg.INIT_CRD:
        ensure_crd(cfg)
    logger.info(
        f"App Operator started (name={cfg.OPERATOR_NAME}, kind={cfg.CRD_KIND}, "
        f"apiVersion={cfg.api_version}, chart={cfg.CHART_PATH}, max_workers={cfg.MAX_WORKERS})"
    )


# ---------------------------------------------------------------------------
# EVENT handler: every watch event goes through the state machine
# ---------------------------------------------------------------------------

@kopf.on.event(operator_settings.CRD_GROUP, operator_settings.CRD_VERSION, operator_settings.CRD_PLURAL)
def on_app_event(event, logger, **kwargs):
    """
    Reconcile one App event.

    Errors are logged and posted as a Warning event on the App, then
    re-raised; the next event (or resync) retries from scratch.
    """
    body = event.get("object") or {}
    app = AppResource.from_body(body)
    try:
        result = get_reconciler().handle(app, deleted=event.get("type") == "DELETED")
    except AppOperatorError as e:
        logger.error(f"App {app.key} failed: {e}")
        kopf.warn(body, reason="ReconcileFailed", message=str(e)[:500])
        raise
    if result.outcome not in (Outcome.UNCHANGED, Outcome.IGNORED, Outcome.GONE):
        logger.info(f"App {app.key}: {result.outcome.value}")
