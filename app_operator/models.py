"""
Pydantic models for the App custom resource and the release it owns.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Phase(str, Enum):
    UNKNOWN = "Unknown"
    APPLIED = "Applied"
    FAILED = "Failed"


REASON_APPLY_SUCCESSFUL = "ApplySuccessful"


class ReleaseInfo(BaseModel):
    """Release metadata recorded in the App status."""
    name: str
    namespace: str = ""
    revision: int = 0
    status: str = ""
    chart: str = ""
    manifestDigest: str = ""


class AppStatus(BaseModel):
    phase: Phase = Phase.UNKNOWN
    reason: str = ""
    message: str = ""
    release: Optional[ReleaseInfo] = None
    lastUpdated: Optional[str] = None


class AppResource(BaseModel):
    """
    In-memory view of an App custom resource.

    ``metadata`` keeps the raw metadata as received so fields the operator
    does not manage (ownerReferences, managedFields...) survive a replace.
    """
    api_version: str = ""
    kind: str = ""
    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)
    deletion_timestamp: Optional[str] = None
    spec: Dict[str, Any] = Field(default_factory=dict)
    status: AppStatus = Field(default_factory=AppStatus)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def option(self, key: str, default: str = "") -> str:
        return self.annotations.get(key, default)

    @classmethod
    def from_body(cls, body) -> "AppResource":
        """Build from a raw Kubernetes object (dict or kopf Body)."""
        meta = copy.deepcopy(dict(body.get("metadata") or {}))
        status = dict(body.get("status") or {})
        return cls(
            api_version=body.get("apiVersion", ""),
            kind=body.get("kind", ""),
            name=meta.get("name", ""),
            namespace=meta.get("namespace") or "default",
            uid=meta.get("uid", ""),
            resource_version=meta.get("resourceVersion"),
            labels=dict(meta.get("labels") or {}),
            annotations=dict(meta.get("annotations") or {}),
            finalizers=list(meta.get("finalizers") or []),
            deletion_timestamp=meta.get("deletionTimestamp"),
            spec=copy.deepcopy(dict(body.get("spec") or {})),
            status=AppStatus.model_validate(status) if status else AppStatus(),
            metadata=meta,
        )

    def to_body(self) -> dict:
        """Render back into a full object suitable for a replace call."""
        meta = copy.deepcopy(self.metadata)
        meta.update({
            "name": self.name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "finalizers": list(self.finalizers),
        })
        if self.resource_version is not None:
            meta["resourceVersion"] = self.resource_version
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": meta,
            "spec": copy.deepcopy(self.spec),
            "status": self.status.model_dump(mode="json", exclude_none=True),
        }


@dataclass
class ReleaseRequest:
    """Everything the release engine needs to install or update a release."""
    namespace: str
    name: str
    chart_path: str
    values: Dict[str, Any] = field(default_factory=dict)
    force: bool = False
    owner: Optional[Dict[str, Any]] = None
