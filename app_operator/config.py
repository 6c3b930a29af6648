"""
Configuration module — all settings from env vars with sensible defaults.
Follows 12-factor app methodology.

The Settings value is immutable; build it once at startup and hand it to
every collaborator instead of reading the environment again.
"""
import os
from dataclasses import dataclass

TRUTHY = ("true", "t", "yes", "y", "1", "on")
FALSY = ("false", "f", "no", "n", "0", "off")


def parse_bool(value, default: bool) -> bool:
    """Parse a boolean option; unrecognised values fall back to ``default``."""
    if value is None:
        return default
    lowered = str(value).strip().lower()
    if lowered in TRUTHY:
        return True
    if lowered in FALSY:
        return False
    return default


def _env_bool(key: str, default: bool) -> bool:
    return parse_bool(os.environ.get(key), default)


def _env_list(key: str) -> tuple:
    return tuple(p.strip() for p in os.environ.get(key, "").split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    # Operator identity (annotation prefix, default release name prefix)
    OPERATOR_NAME: str = os.environ.get("OPERATOR_NAME", "app-operator")

    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = _env_bool("IN_CLUSTER", False)

    # CRD
    CRD_GROUP: str = os.environ.get("CRD_GROUP", "app-operator.io")
    CRD_VERSION: str = os.environ.get("CRD_VERSION", "v1alpha1")
    CRD_KIND: str = os.environ.get("CRD_KIND", "App")
    CRD_PLURAL: str = os.environ.get("CRD_PLURAL", "apps")
    INIT_CRD: bool = _env_bool("INIT_CRD", False)

    # Charts and values
    CHART_PATH: str = os.environ.get("CHART_PATH", "/charts")
    CHART_CACHE_DIR: str = os.environ.get("CHART_CACHE_DIR", "")
    VALUE_FILES: tuple = _env_list("VALUE_FILES")
    FETCH_EXEC: str = os.environ.get("FETCH_EXEC", "")

    # Release behaviour
    FORCE: bool = _env_bool("FORCE", False)
    HOOKS_ENABLED: bool = _env_bool("HOOKS_ENABLED", True)

    # Helm
    HELM_BINARY: str = os.environ.get("HELM_BINARY", "helm")
    HELM_TIMEOUT: int = int(os.environ.get("HELM_TIMEOUT", "300"))
    HELM_HISTORY_MAX: int = int(os.environ.get("HELM_HISTORY_MAX", "1"))
    # uninstall a release left in pending-* and install it fresh; off by default
    HELM_CLEAR_PENDING: bool = _env_bool("HELM_CLEAR_PENDING", False)

    # Operator runtime
    MAX_WORKERS: int = int(os.environ.get("MAX_WORKERS", "3"))
    RESYNC_PERIOD: int = int(os.environ.get("RESYNC_PERIOD", "0"))
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # API
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8080"))
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "10/minute")
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")

    @property
    def api_version(self) -> str:
        return f"{self.CRD_GROUP}/{self.CRD_VERSION}"

    @property
    def resource_type(self) -> str:
        return f"{self.CRD_PLURAL}.{self.CRD_GROUP}"

    @property
    def finalizer(self) -> str:
        return f"{self.OPERATOR_NAME}/finalizer"

    @property
    def cache_root(self) -> str:
        return self.CHART_CACHE_DIR or self.CHART_PATH

    def annotation(self, option: str) -> str:
        """Reserved annotation key for an operator option."""
        return f"{self.OPERATOR_NAME}/{option}"


settings = Settings()
