"""
Behavior overrides for the reconciliation core.

An embedding caller supplies a ``Behavior`` with any subset of strategy
slots filled in; every empty slot falls back to the default below.

  release_name(app)             -> "<operator>-<name>" or the release annotation
  release_values(app)           -> the App's raw spec
  option_force(app)             -> global FORCE flag or the force annotation
  logger(app)                   -> a logger that discards everything
  chart_path(app, base_path)    -> ChartResolver.resolve
"""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .charts import ChartResolver
from .config import parse_bool
from .hooks import HookRunner
from .models import AppResource

OPTION_RELEASE = "release"
OPTION_FORCE = "force"

_null_logger = logging.getLogger("app-operator.null")
_null_logger.addHandler(logging.NullHandler())
_null_logger.propagate = False


@dataclass(frozen=True)
class Behavior:
    release_name: Optional[Callable[[AppResource], str]] = None
    release_values: Optional[Callable[[AppResource], Dict[str, Any]]] = None
    option_force: Optional[Callable[[AppResource], bool]] = None
    logger: Optional[Callable[[AppResource], logging.Logger]] = None
    chart_path: Optional[Callable[[AppResource, str], str]] = None


def default_release_name(settings, app: AppResource) -> str:
    return app.option(settings.annotation(OPTION_RELEASE), f"{settings.OPERATOR_NAME}-{app.name}")


def default_option_force(settings, app: AppResource) -> bool:
    return parse_bool(app.annotations.get(settings.annotation(OPTION_FORCE)), settings.FORCE)


class BehaviorRegistry:
    """Resolves each capability against the supplied Behavior, or its default."""

    def __init__(self, settings, behavior: Optional[Behavior] = None,
                 resolver: Optional[ChartResolver] = None):
        self.settings = settings
        self.behavior = behavior or Behavior()
        self.resolver = resolver or ChartResolver(settings, HookRunner(settings))

    def release_name(self, app: AppResource) -> str:
        if self.behavior.release_name:
            return self.behavior.release_name(app)
        return default_release_name(self.settings, app)

    def release_values(self, app: AppResource) -> Dict[str, Any]:
        if self.behavior.release_values:
            return self.behavior.release_values(app)
        return copy.deepcopy(app.spec)

    def option_force(self, app: AppResource) -> bool:
        if self.behavior.option_force:
            return self.behavior.option_force(app)
        return default_option_force(self.settings, app)

    def logger(self, app: AppResource) -> logging.Logger:
        if self.behavior.logger:
            return self.behavior.logger(app)
        return _null_logger

    def chart_path(self, app: AppResource, base_path: str) -> str:
        if self.behavior.chart_path:
            return self.behavior.chart_path(app, base_path)
        return self.resolver.resolve(app, base_path, self.release_name(app))
