import copy
from unittest.mock import MagicMock

import pytest

from app_operator.config import Settings
from app_operator.models import AppResource, ReleaseInfo


class FakeStore:
    """In-memory stand-in for KubeStore.replace_app and the value lookups."""

    def __init__(self):
        self.replaced = []
        self.config_maps = {}
        self.secrets = {}
        self._version = 100

    def replace_app(self, app: AppResource) -> AppResource:
        self._version += 1
        stored = app.model_copy(deep=True)
        stored.resource_version = str(self._version)
        self.replaced.append(stored)
        return stored.model_copy(deep=True)

    def get_config_map_data(self, namespace, name):
        return copy.deepcopy(self.config_maps.get((namespace, name)))

    def get_secret_data(self, namespace, name):
        return copy.deepcopy(self.secrets.get((namespace, name)))


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Explicit settings so tests never depend on the process environment."""
    chart_dir = tmp_path / "charts"
    chart_dir.mkdir()
    return Settings(
        OPERATOR_NAME="app-operator",
        CRD_GROUP="app-operator.io",
        CRD_VERSION="v1alpha1",
        CRD_KIND="App",
        CRD_PLURAL="apps",
        CHART_PATH=str(chart_dir),
        CHART_CACHE_DIR="",
        VALUE_FILES=(),
        FETCH_EXEC="",
        FORCE=False,
        HOOKS_ENABLED=True,
        HELM_BINARY="helm",
        HELM_TIMEOUT=300,
        HELM_HISTORY_MAX=1,
    )


@pytest.fixture
def make_app():
    """Factory for App resources with sensible defaults."""

    def _make(name="web", namespace="apps", spec=None, annotations=None,
              labels=None, finalizers=None, deletion_timestamp=None, uid="uid-1234"):
        return AppResource(
            api_version="app-operator.io/v1alpha1",
            kind="App",
            name=name,
            namespace=namespace,
            uid=uid,
            resource_version="1",
            spec=spec if spec is not None else {"replicas": 1},
            annotations=annotations or {},
            labels=labels or {},
            finalizers=finalizers or [],
            deletion_timestamp=deletion_timestamp,
        )

    return _make


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def engine() -> MagicMock:
    """Release engine double that reports revision 1 for every install/update."""
    mock = MagicMock()
    mock.install_or_update.return_value = ReleaseInfo(
        name="app-operator-web", namespace="apps", revision=1, status="deployed"
    )
    return mock
