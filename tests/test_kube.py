"""Tests for the Kubernetes store and CRD bootstrap."""

import base64
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client import ApiException

from app_operator.errors import ParseError, PersistenceError
from app_operator.kube import KubeStore, crd_manifest, ensure_crd
from app_operator.models import AppResource

BODY = {
    "apiVersion": "app-operator.io/v1alpha1",
    "kind": "App",
    "metadata": {
        "name": "web",
        "namespace": "apps",
        "uid": "u1",
        "resourceVersion": "7",
        "ownerReferences": [{"kind": "Team", "name": "platform", "uid": "t1"}],
        "annotations": {"app-operator/release": "web"},
    },
    "spec": {"replicas": 2},
    "status": {"phase": "Applied", "reason": "ApplySuccessful"},
}


@pytest.fixture
def custom():
    api = MagicMock()
    with patch("app_operator.kube.custom_api", return_value=api):
        yield api


@pytest.fixture
def core():
    api = MagicMock()
    with patch("app_operator.kube.core_api", return_value=api):
        yield api


class TestAppResourceBody:
    def test_round_trip_keeps_unmanaged_metadata(self):
        app = AppResource.from_body(BODY)
        app.finalizers.append("app-operator/finalizer")

        body = app.to_body()

        assert body["metadata"]["ownerReferences"] == BODY["metadata"]["ownerReferences"]
        assert body["metadata"]["resourceVersion"] == "7"
        assert body["metadata"]["finalizers"] == ["app-operator/finalizer"]
        assert body["status"]["phase"] == "Applied"
        assert "release" not in body["status"]

    def test_missing_namespace_defaults(self):
        app = AppResource.from_body({"metadata": {"name": "x"}})
        assert app.namespace == "default"
        assert not app.deleting


class TestKubeStore:
    def test_get_missing_app_is_none(self, settings, custom):
        custom.get_namespaced_custom_object.side_effect = ApiException(status=404)
        assert KubeStore(settings).get_app("apps", "web") is None

    def test_get_other_errors_are_persistence_errors(self, settings, custom):
        custom.get_namespaced_custom_object.side_effect = ApiException(status=500)
        with pytest.raises(PersistenceError):
            KubeStore(settings).get_app("apps", "web")

    def test_forbidden_replace_is_persistence_error(self, settings, custom):
        custom.replace_namespaced_custom_object.side_effect = ApiException(status=403, reason="Forbidden")
        with pytest.raises(PersistenceError) as exc_info:
            KubeStore(settings).replace_app(AppResource.from_body(BODY))
        assert "403" in str(exc_info.value)

    def test_value_source_read_failure_is_persistence_error(self, settings, core):
        core.read_namespaced_config_map.side_effect = ApiException(status=403)
        core.read_namespaced_secret.side_effect = ApiException(status=503)
        store = KubeStore(settings)
        with pytest.raises(PersistenceError):
            store.get_config_map_data("apps", "web")
        with pytest.raises(PersistenceError):
            store.get_secret_data("apps", "web")

    def test_list_failure_is_persistence_error(self, settings, custom):
        custom.list_cluster_custom_object.side_effect = ApiException(status=500)
        with pytest.raises(PersistenceError):
            KubeStore(settings).list_apps()

    def test_replace_sends_full_body(self, settings, custom):
        custom.replace_namespaced_custom_object.return_value = BODY
        app = AppResource.from_body(BODY)

        result = KubeStore(settings).replace_app(app)

        args = custom.replace_namespaced_custom_object.call_args[0]
        assert args[:5] == ("app-operator.io", "v1alpha1", "apps", "apps", "web")
        assert args[5]["metadata"]["resourceVersion"] == "7"
        assert result.name == "web"

    def test_replace_conflict_is_persistence_error(self, settings, custom):
        custom.replace_namespaced_custom_object.side_effect = ApiException(status=409, reason="Conflict")
        with pytest.raises(PersistenceError):
            KubeStore(settings).replace_app(AppResource.from_body(BODY))

    def test_create_drops_resource_version(self, settings, custom):
        custom.create_namespaced_custom_object.return_value = BODY

        KubeStore(settings).create_app(AppResource.from_body(BODY))

        sent = custom.create_namespaced_custom_object.call_args[0][4]
        assert "resourceVersion" not in sent["metadata"]

    def test_list_all_namespaces(self, settings, custom):
        custom.list_cluster_custom_object.return_value = {"items": [BODY]}

        apps = KubeStore(settings).list_apps()

        assert [a.key for a in apps] == ["apps/web"]
        custom.list_namespaced_custom_object.assert_not_called()

    def test_delete_missing_returns_false(self, settings, custom):
        custom.delete_namespaced_custom_object.side_effect = ApiException(status=404)
        assert KubeStore(settings).delete_app("apps", "web") is False

    def test_config_map_missing_is_none(self, settings, core):
        core.read_namespaced_config_map.side_effect = ApiException(status=404)
        assert KubeStore(settings).get_config_map_data("apps", "web") is None

    def test_secret_data_is_decoded(self, settings, core):
        encoded = base64.b64encode(b"tier: secret\n").decode()
        core.read_namespaced_secret.return_value = MagicMock(data={"values.yaml": encoded})

        assert KubeStore(settings).get_secret_data("apps", "web") == {"values.yaml": "tier: secret\n"}

    def test_undecodable_secret_is_parse_error(self, settings, core):
        core.read_namespaced_secret.return_value = MagicMock(data={"values": "%%%not-base64"})
        with pytest.raises(ParseError):
            KubeStore(settings).get_secret_data("apps", "web")


class TestCrd:
    def test_manifest_names(self, settings):
        manifest = crd_manifest(settings)
        assert manifest["metadata"]["name"] == "apps.app-operator.io"
        assert manifest["spec"]["names"]["kind"] == "App"
        assert manifest["spec"]["scope"] == "Namespaced"

    def test_existing_crd_is_not_an_error(self, settings):
        api = MagicMock()
        api.create_custom_resource_definition.side_effect = ApiException(status=409)
        with patch("app_operator.kube.apiext_api", return_value=api):
            assert ensure_crd(settings) is False

    def test_created(self, settings):
        with patch("app_operator.kube.apiext_api", return_value=MagicMock()):
            assert ensure_crd(settings) is True
