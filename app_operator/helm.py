"""
Helm release engine — install/upgrade/uninstall through the Helm 3 CLI.

The reconciliation core only talks to this through two calls:

  install_or_update(request, log) -> ReleaseInfo
  uninstall(name, namespace, log)  (raises ReleaseNotFoundError when absent)
"""
import copy
import hashlib
import json as _json
import logging
import os
import subprocess
import tempfile
from typing import Optional

import yaml

from .errors import ReleaseEngineError, ReleaseNotFoundError
from .models import ReleaseInfo, ReleaseRequest

logger = logging.getLogger("app-operator.helm")

# An interrupted operation leaves the release locked in one of these states.
PENDING_STATES = {"pending-install", "pending-upgrade", "pending-rollback"}


def with_owner_reference(values: dict, owner: Optional[dict]) -> dict:
    """Expose the owning App as .Values.global.ownerReferences."""
    rendered = copy.deepcopy(values)
    if not owner:
        return rendered
    global_values = {"ownerReferences": [owner]}
    current = rendered.get("global")
    if isinstance(current, dict):
        global_values.update(current)
    rendered["global"] = global_values
    return rendered


def parse_release(stdout: str, fallback_name: str, fallback_namespace: str) -> ReleaseInfo:
    """Turn ``helm ... -o json`` output into ReleaseInfo."""
    try:
        data = _json.loads(stdout) if stdout.strip() else {}
    except ValueError:
        data = {}
    chart_meta = (data.get("chart") or {}).get("metadata") or {}
    chart = "-".join(p for p in (chart_meta.get("name"), chart_meta.get("version")) if p)
    manifest = data.get("manifest") or ""
    return ReleaseInfo(
        name=data.get("name", fallback_name),
        namespace=data.get("namespace", fallback_namespace),
        revision=int(data.get("version", 0) or 0),
        status=(data.get("info") or {}).get("status", ""),
        chart=chart,
        manifestDigest=hashlib.sha256(manifest.encode("utf-8")).hexdigest() if manifest else "",
    )


class HelmReleaseEngine:
    def __init__(self, settings):
        self.settings = settings

    def run(self, args: list, check: bool = True,
            log: Optional[logging.Logger] = None) -> subprocess.CompletedProcess:
        """Execute a Helm CLI command. Raises ReleaseEngineError on failure if check=True."""
        log = log or logger
        cmd = [self.settings.HELM_BINARY] + args
        log.info(f"helm> {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True,
                                    timeout=self.settings.HELM_TIMEOUT + 60)
        except subprocess.TimeoutExpired as e:
            raise ReleaseEngineError(f"Helm command timed out: {' '.join(cmd)}") from e
        except OSError as e:
            raise ReleaseEngineError(f"Helm command could not start: {e}") from e
        if result.stdout:
            log.debug(f"helm stdout: {result.stdout[:800]}")
        if result.stderr:
            log.warning(f"helm stderr: {result.stderr[:800]}")
        if check and result.returncode != 0:
            raise ReleaseEngineError(f"Helm command failed (rc={result.returncode}): {result.stderr[:500]}")
        return result

    def release_status(self, name: str, namespace: str,
                       log: Optional[logging.Logger] = None) -> Optional[str]:
        """Status string of a release (e.g. 'deployed', 'failed'), or None if it does not exist."""
        r = self.run(["status", name, "-n", namespace, "-o", "json"], check=False, log=log)
        if r.returncode != 0:
            return None
        try:
            return _json.loads(r.stdout).get("info", {}).get("status", "unknown")
        except ValueError:
            return "unknown"

    def install_or_update(self, request: ReleaseRequest,
                          log: Optional[logging.Logger] = None) -> ReleaseInfo:
        """
        Upgrade the release if one exists under ``request.name``, install it otherwise.

        A release in any state, ``failed`` included, is upgraded; only a
        ``pending-*`` release with HELM_CLEAR_PENDING set is uninstalled first.

        Force maps to ``--replace`` on install (reuse a deleted release name) and
        ``--force`` on upgrade (recreate resources that cannot be patched).
        """
        s = self.settings
        status = self.release_status(request.name, request.namespace, log)
        if status in PENDING_STATES and s.HELM_CLEAR_PENDING:
            (log or logger).warning(f"Helm release {request.name} is stuck in '{status}', clearing it before install")
            self.run(["uninstall", request.name, "-n", request.namespace, "--no-hooks"], check=False, log=log)
            status = None

        values = with_owner_reference(request.values, request.owner)
        fd, values_file = tempfile.mkstemp(prefix="values-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(values, f, default_flow_style=False)
            common = [
                "-n", request.namespace,
                "--values", values_file,
                "--timeout", f"{s.HELM_TIMEOUT}s",
                "-o", "json",
            ]
            if status is None:
                args = ["install", request.name, request.chart_path] + common
                if request.force:
                    args.append("--replace")
            else:
                args = ["upgrade", request.name, request.chart_path] + common
                if s.HELM_HISTORY_MAX > 0:
                    args += ["--history-max", str(s.HELM_HISTORY_MAX)]
                if request.force:
                    args.append("--force")
            result = self.run(args, log=log)
        finally:
            os.unlink(values_file)
        return parse_release(result.stdout, request.name, request.namespace)

    def uninstall(self, name: str, namespace: str, log: Optional[logging.Logger] = None):
        """Uninstall (purge) a release."""
        r = self.run(["uninstall", name, "-n", namespace], check=False, log=log)
        if r.returncode == 0:
            return
        if "not found" in r.stderr:
            raise ReleaseNotFoundError(f"release {name} not found")
        raise ReleaseEngineError(f"Helm uninstall failed (rc={r.returncode}): {r.stderr[:500]}")
