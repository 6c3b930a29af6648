"""
Kubernetes service layer — all API interactions for App resources.

Design principles:
  - Optimistic concurrency: replace always carries the resourceVersion we read
  - Get-or-404: absent config maps / secrets are "no values", not errors
  - Clean error handling: translates K8s API exceptions to domain errors
"""
import base64
import binascii
import logging
from typing import Dict, List, Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from .errors import ParseError, PersistenceError
from .models import AppResource

logger = logging.getLogger("app-operator.kube")

_k8s_loaded = False


def _ensure_k8s(settings):
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    elif settings.KUBECONFIG:
        config.load_kube_config(config_file=settings.KUBECONFIG)
    else:
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
    _k8s_loaded = True


def core_api(settings) -> client.CoreV1Api:
    _ensure_k8s(settings)
    return client.CoreV1Api()


def custom_api(settings) -> client.CustomObjectsApi:
    _ensure_k8s(settings)
    return client.CustomObjectsApi()


def apiext_api(settings) -> client.ApiextensionsV1Api:
    _ensure_k8s(settings)
    return client.ApiextensionsV1Api()


# ---------------------------------------------------------------------------
# CRD bootstrap
# ---------------------------------------------------------------------------

def crd_manifest(settings) -> dict:
    """Namespaced CRD for the App kind; spec and status are free-form."""
    free_form = {"type": "object", "x-kubernetes-preserve-unknown-fields": True}
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": settings.resource_type},
        "spec": {
            "group": settings.CRD_GROUP,
            "scope": "Namespaced",
            "names": {
                "plural": settings.CRD_PLURAL,
                "singular": settings.CRD_KIND.lower(),
                "kind": settings.CRD_KIND,
            },
            "versions": [{
                "name": settings.CRD_VERSION,
                "served": True,
                "storage": True,
                "schema": {"openAPIV3Schema": {
                    "type": "object",
                    "properties": {"spec": free_form, "status": free_form},
                }},
            }],
        },
    }


def ensure_crd(settings) -> bool:
    """Create the CRD idempotently. Returns True if created, False if it existed."""
    try:
        apiext_api(settings).create_custom_resource_definition(crd_manifest(settings))
        logger.info(f"CRD {settings.resource_type} created")
        return True
    except ApiException as e:
        if e.status == 409:
            logger.info(f"CRD {settings.resource_type} already exists")
            return False
        raise


# ---------------------------------------------------------------------------
# Resource store
# ---------------------------------------------------------------------------

def _decode_secret_data(data: Dict[str, str], namespace: str, name: str) -> Dict[str, str]:
    decoded = {}
    for key, value in data.items():
        try:
            decoded[key] = base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ParseError(f"secret {namespace}/{name} key {key!r} is not valid base64 text: {e}") from e
    return decoded


def _api_error(action: str, e: ApiException) -> PersistenceError:
    return PersistenceError(f"{action} failed: {e.status} {e.reason}")


class KubeStore:
    """Reads and persists App resources plus their auxiliary value sources."""

    def __init__(self, settings):
        self.settings = settings

    def _args(self, namespace: str):
        s = self.settings
        return s.CRD_GROUP, s.CRD_VERSION, namespace, s.CRD_PLURAL

    def get_app(self, namespace: str, name: str) -> Optional[AppResource]:
        try:
            item = custom_api(self.settings).get_namespaced_custom_object(*self._args(namespace), name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"get App {namespace}/{name}", e) from e
        return AppResource.from_body(item)

    def list_apps(self, namespace: Optional[str] = None) -> List[AppResource]:
        api = custom_api(self.settings)
        s = self.settings
        try:
            if namespace:
                result = api.list_namespaced_custom_object(*self._args(namespace))
            else:
                result = api.list_cluster_custom_object(s.CRD_GROUP, s.CRD_VERSION, s.CRD_PLURAL)
        except ApiException as e:
            raise _api_error(f"list Apps in {namespace or 'all namespaces'}", e) from e
        return [AppResource.from_body(item) for item in result.get("items", [])]

    def create_app(self, app: AppResource) -> AppResource:
        body = app.to_body()
        body["metadata"].pop("resourceVersion", None)
        try:
            result = custom_api(self.settings).create_namespaced_custom_object(*self._args(app.namespace), body)
        except ApiException as e:
            raise _api_error(f"create App {app.key}", e) from e
        logger.info(f"App {app.key} created")
        return AppResource.from_body(result)

    def replace_app(self, app: AppResource) -> AppResource:
        """Persist spec, status, annotations and finalizers. 409 means someone got there first."""
        try:
            result = custom_api(self.settings).replace_namespaced_custom_object(
                *self._args(app.namespace), app.name, app.to_body()
            )
        except ApiException as e:
            if e.status == 409:
                raise PersistenceError(f"App {app.key} was modified concurrently: {e.reason}") from e
            raise _api_error(f"replace App {app.key}", e) from e
        return AppResource.from_body(result)

    def delete_app(self, namespace: str, name: str) -> bool:
        """Delete an App. Returns True if deleted, False if not found."""
        try:
            custom_api(self.settings).delete_namespaced_custom_object(*self._args(namespace), name)
            logger.info(f"App {namespace}/{name} deletion initiated")
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise _api_error(f"delete App {namespace}/{name}", e) from e

    def get_config_map_data(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        try:
            cm = core_api(self.settings).read_namespaced_config_map(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"read config map {namespace}/{name}", e) from e
        return dict(cm.data or {})

    def get_secret_data(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        try:
            secret = core_api(self.settings).read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"read secret {namespace}/{name}", e) from e
        return _decode_secret_data(secret.data or {}, namespace, name)
