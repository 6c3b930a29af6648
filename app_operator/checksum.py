"""
Change detection for App resources.

The digest covers name, namespace, labels, every annotation except the
checksum annotation itself, the composed release values and whether a
deletion timestamp is set. An unchanged digest means there is nothing to do.
"""
import hashlib
import json
from typing import Any, Dict, Tuple

from .models import AppResource

OPTION_CHECKSUM = "checksum"


def compute_checksum(app: AppResource, values: Dict[str, Any], checksum_key: str) -> str:
    annotations = {k: v for k, v in app.annotations.items() if k != checksum_key}
    payload = json.dumps(
        [app.name, app.namespace, app.labels, annotations, values, app.deleting],
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def should_reconcile(app: AppResource, values: Dict[str, Any],
                     checksum_key: str) -> Tuple[bool, AppResource]:
    """
    Compare the current digest with the one recorded on the resource.

    When they differ, returns (True, copy with the new digest recorded); the
    copy is not persisted. Otherwise returns (False, app) untouched.
    """
    last = app.annotations.get(checksum_key, "")
    current = compute_checksum(app, values, checksum_key)
    if current == last:
        return False, app
    updated = app.model_copy(deep=True)
    updated.annotations[checksum_key] = current
    return True, updated
