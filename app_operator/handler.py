"""
Reconciliation core: decides, per delivered event, whether an App needs an
install/update, an uninstall, or nothing at all.

  Active, checksum unchanged          -> no-op
  Active, checksum changed            -> pre-install hook, helm install/upgrade,
                                         add finalizer, persist, post-install hook
  Terminating (deleting, finalizer)   -> pre-uninstall hook, helm uninstall,
                                         remove finalizer, persist, post-uninstall hook
  Gone (deleting, no finalizer)       -> no-op

A deletion timestamp always wins over a changed checksum. Nothing is retried
here; any error leaves the stored resource untouched until the next event.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .behavior import Behavior, BehaviorRegistry
from .charts import ChartResolver
from .checksum import OPTION_CHECKSUM, should_reconcile
from .errors import ReleaseNotFoundError
from .finalizers import has_marker, with_marker_added, with_marker_removed
from .hooks import POST_INSTALL, POST_UNINSTALL, PRE_INSTALL, PRE_UNINSTALL, HookRunner
from .models import REASON_APPLY_SUCCESSFUL, AppResource, AppStatus, Phase, ReleaseRequest

logger = logging.getLogger("app-operator")


class Outcome(str, Enum):
    IGNORED = "ignored"
    UNCHANGED = "unchanged"
    APPLIED = "applied"
    UNINSTALLED = "uninstalled"
    ALREADY_UNINSTALLED = "already-uninstalled"
    GONE = "gone"


@dataclass
class ReconcileResult:
    outcome: Outcome
    app: AppResource


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def owner_reference(app: AppResource) -> Optional[dict]:
    if not app.uid:
        return None
    return {
        "apiVersion": app.api_version,
        "kind": app.kind,
        "name": app.name,
        "uid": app.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


class Reconciler:
    """
    Ties the checksum gate, finalizer, hooks, chart resolution and value
    composition to a release engine and a resource store.

    ``engine`` needs ``install_or_update(request, log)`` and
    ``uninstall(name, namespace, log)``; ``store`` needs ``replace_app(app)``.
    """

    def __init__(self, settings, engine, store, behavior: Optional[Behavior] = None,
                 hooks: Optional[HookRunner] = None):
        self.settings = settings
        self.engine = engine
        self.store = store
        self.hooks = hooks or HookRunner(settings)
        self.registry = BehaviorRegistry(settings, behavior, ChartResolver(settings, self.hooks))

    @property
    def marker(self) -> str:
        return self.settings.finalizer

    def handle(self, app: AppResource, deleted: bool = False) -> ReconcileResult:
        """
        Process one event for ``app``.

        ``deleted`` marks a watch DELETED notification: the object is already
        gone from the API server, so there is nothing left to persist.
        """
        if deleted:
            return ReconcileResult(Outcome.IGNORED, app)
        if app.deleting:
            if not has_marker(app, self.marker):
                return ReconcileResult(Outcome.GONE, app)
            return self.uninstall(app)

        values = self.registry.release_values(app)
        changed, updated = should_reconcile(app, values, self.settings.annotation(OPTION_CHECKSUM))
        if not changed:
            return ReconcileResult(Outcome.UNCHANGED, app)
        return self.install(updated)

    def install(self, app: AppResource) -> ReconcileResult:
        release = self.registry.release_name(app)
        logger.info(f"Installing {app.key} (release {release})")
        self.hooks.run_hook(app, PRE_INSTALL, release)

        # values may come from objects the pre-install hook just created
        values = self.registry.release_values(app)
        chart_path = self.registry.chart_path(app, self.settings.CHART_PATH)
        request = ReleaseRequest(
            namespace=app.namespace,
            name=release,
            chart_path=chart_path,
            values=values,
            force=self.registry.option_force(app),
            owner=owner_reference(app),
        )
        info = self.engine.install_or_update(request, self.registry.logger(app))

        updated = with_marker_added(app, self.marker)
        updated.status = AppStatus(
            phase=Phase.APPLIED,
            reason=REASON_APPLY_SUCCESSFUL,
            release=info,
            lastUpdated=_now(),
        )
        persisted = self.store.replace_app(updated)
        self.hooks.run_hook(persisted, POST_INSTALL, release)
        logger.info(f"{app.key} updated (release {release} revision {info.revision})")
        return ReconcileResult(Outcome.APPLIED, persisted)

    def uninstall(self, app: AppResource) -> ReconcileResult:
        release = self.registry.release_name(app)
        logger.info(f"Uninstalling {app.key} (release {release})")
        self.hooks.run_hook(app, PRE_UNINSTALL, release)

        outcome = Outcome.UNINSTALLED
        try:
            self.engine.uninstall(release, app.namespace, self.registry.logger(app))
        except ReleaseNotFoundError:
            logger.info(f"{app.key} already uninstalled")
            outcome = Outcome.ALREADY_UNINSTALLED

        persisted = self.store.replace_app(with_marker_removed(app, self.marker))
        self.hooks.run_hook(persisted, POST_UNINSTALL, release)
        logger.info(f"{app.key} uninstalled")
        return ReconcileResult(outcome, persisted)
