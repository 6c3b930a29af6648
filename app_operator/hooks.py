"""
Lifecycle hooks — external shell scripts run around install and uninstall.

Scripts come from the App's reserved annotations (``<operator>/pre-install``
and friends). Each script runs under ``/bin/bash -c`` with the EVENT_*
variables describing the resource; stdout and stderr are forwarded line by
line to a logger named after the event while the caller blocks on exit.
"""
import logging
import os
import subprocess
import threading
from typing import Dict, Optional

from .errors import HookError

logger = logging.getLogger("app-operator.hooks")

PRE_INSTALL = "pre-install"
POST_INSTALL = "post-install"
PRE_UNINSTALL = "pre-uninstall"
POST_UNINSTALL = "post-uninstall"


def _forward(stream, log: logging.Logger):
    # drain to EOF before closing
    with stream:
        for line in iter(stream.readline, ""):
            log.info(line.rstrip("\n"))


class HookRunner:
    def __init__(self, settings, shell: str = "/bin/bash"):
        self.settings = settings
        self.shell = shell

    def event_env(self, resource, event: str, release: str) -> Dict[str, str]:
        s = self.settings
        return {
            "EVENT_TYPE": event,
            "EVENT_API_VERSION": s.api_version,
            "EVENT_KIND": s.CRD_KIND,
            "EVENT_NAMESPACE": resource.namespace,
            "EVENT_RESOURCE_TYPE": s.resource_type,
            "EVENT_RESOURCE": resource.name,
            "EVENT_RELEASE": release,
        }

    def run_hook(self, resource, hook: str, release: str) -> bool:
        """
        Run the script configured for ``hook`` on this resource.

        Returns False when nothing ran (no script, or hooks disabled).
        Raises HookError if the script exits non-zero.
        """
        script = resource.option(self.settings.annotation(hook))
        if not script:
            return False
        if not self.settings.HOOKS_ENABLED:
            logging.getLogger(f"app-operator.{hook}").info("skipped, hooks disabled")
            return False
        self.run_event(resource, hook, script, release)
        return True

    def run_event(self, resource, event: str, script: str, release: str,
                  extra_env: Optional[Dict[str, str]] = None):
        env = dict(os.environ)
        env.update(self.event_env(resource, event, release))
        if extra_env:
            env.update(extra_env)
        log = logging.getLogger(f"app-operator.{event}")
        logger.debug(f"[{resource.key}] running {event} script")
        try:
            proc = subprocess.Popen(
                [self.shell, "-c", script],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
            )
        except OSError as e:
            log.error(f"failed to setup command: {e}")
            raise HookError(event, -1) from e

        readers = [
            threading.Thread(target=_forward, args=(proc.stdout, log), daemon=True),
            threading.Thread(target=_forward, args=(proc.stderr, log), daemon=True),
        ]
        for t in readers:
            t.start()
        returncode = proc.wait()
        for t in readers:
            t.join()
        if returncode != 0:
            log.error(f"failed to run command: exit status {returncode}")
            raise HookError(event, returncode)
