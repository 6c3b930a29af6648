"""
Pydantic models for API request/response validation.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, List

from app_operator.models import ReleaseInfo


class AppCreateRequest(BaseModel):
    """Install (create or update) an App resource."""
    name: str = Field(
        ...,
        min_length=1,
        max_length=63,
        pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$",
        description="App resource name (DNS-1123 label)",
        examples=["my-app", "demo"],
    )
    namespace: str = Field(
        default="default",
        max_length=63,
        pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$",
    )
    spec: Dict[str, Any] = Field(
        default_factory=dict,
        description="Chart values, merged over the configured value files",
    )
    options: Dict[str, str] = Field(
        default_factory=dict,
        description="Operator options stored as '<operator>/<option>' annotations, "
                    "e.g. {'chart': 'https://example.com/foo-1.2.tgz', 'pre-install': 'echo $EVENT_TYPE'}",
    )
    labels: Dict[str, str] = Field(default_factory=dict)
    once: bool = Field(
        default=False,
        description="Only create; leave an existing App untouched",
    )


class AppResponse(BaseModel):
    """App details returned to clients."""
    name: str
    namespace: str
    phase: str = "Unknown"
    reason: str = ""
    message: str = ""
    release: Optional[ReleaseInfo] = None
    lastUpdated: Optional[str] = None
    deleting: bool = False
    finalized: bool = False
    options: Dict[str, str] = {}
    spec: Dict[str, Any] = {}


class AppListResponse(BaseModel):
    apps: List[AppResponse]
    total: int


class ErrorResponse(BaseModel):
    detail: str
    code: str = "UNKNOWN_ERROR"


class AuditLogEntry(BaseModel):
    timestamp: str
    action: str  # INSTALL, UNINSTALL
    app: str
    user_id: str = "anonymous"
    result: str  # CREATED, UPDATED, UNCHANGED, ACCEPTED, FAILED
    detail: str = ""
