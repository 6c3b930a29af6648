"""Tests for the kopf event wiring."""

import logging
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client import ApiException

from app_operator import operator
from app_operator.errors import PersistenceError, ReleaseEngineError
from app_operator.handler import Outcome, ReconcileResult, Reconciler
from app_operator.kube import KubeStore

BODY = {
    "apiVersion": "app-operator.io/v1alpha1",
    "kind": "App",
    "metadata": {"name": "web", "namespace": "apps", "uid": "u1"},
    "spec": {},
}


@pytest.fixture
def reconciler():
    mock = MagicMock()
    with patch.object(operator, "get_reconciler", return_value=mock):
        yield mock


class TestOnAppEvent:
    def test_event_is_handed_to_reconciler(self, reconciler):
        reconciler.handle.return_value = ReconcileResult(Outcome.APPLIED, MagicMock())

        operator.on_app_event({"type": "MODIFIED", "object": BODY}, logger=logging.getLogger("test"))

        app = reconciler.handle.call_args[0][0]
        assert app.key == "apps/web"
        assert reconciler.handle.call_args[1] == {"deleted": False}

    def test_deleted_event_is_flagged(self, reconciler):
        reconciler.handle.return_value = ReconcileResult(Outcome.IGNORED, MagicMock())

        operator.on_app_event({"type": "DELETED", "object": BODY}, logger=logging.getLogger("test"))

        assert reconciler.handle.call_args[1] == {"deleted": True}

    def test_failure_posts_warning_and_reraises(self, reconciler):
        reconciler.handle.side_effect = ReleaseEngineError("helm upgrade failed")

        with patch.object(operator.kopf, "warn") as warn:
            with pytest.raises(ReleaseEngineError):
                operator.on_app_event({"type": "MODIFIED", "object": BODY}, logger=logging.getLogger("test"))

        warn.assert_called_once()
        assert warn.call_args[1]["reason"] == "ReconcileFailed"

    def test_store_rejection_posts_warning(self, settings, engine):
        api = MagicMock()
        api.replace_namespaced_custom_object.side_effect = ApiException(status=403, reason="Forbidden")
        reconciler = Reconciler(settings, engine, KubeStore(settings), hooks=MagicMock())

        with patch.object(operator, "get_reconciler", return_value=reconciler), \
                patch("app_operator.kube.custom_api", return_value=api), \
                patch.object(operator.kopf, "warn") as warn:
            with pytest.raises(PersistenceError):
                operator.on_app_event({"type": "MODIFIED", "object": BODY}, logger=logging.getLogger("test"))

        engine.install_or_update.assert_called_once()
        assert "403" in warn.call_args[1]["message"]


class TestBuildReconciler:
    def test_production_wiring(self, settings):
        reconciler = operator.build_reconciler(settings)

        assert reconciler.marker == "app-operator/finalizer"
        assert reconciler.engine.settings is settings
        assert reconciler.registry.logger(MagicMock()).name == "app-operator.helm"
