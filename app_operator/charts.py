"""
Chart resolution — map an App's chart annotation onto a local chart path.

  (no override)        -> base chart path
  /absolute/path       -> unchanged
  http(s)://.../x.tgz  -> <cache root>/x   (fetched on miss)
  relative/path        -> <base chart path>/relative/path

A missing local path (or ``<operator>/fetch: always``) runs the configured
fetch command with FETCH_CHART, FETCH_CHART_TO and FETCH_CHART_FROM set.
"""
import logging
import os
import posixpath
from typing import Optional, Tuple
from urllib.parse import urlparse

from .errors import ChartFetchError, ConfigError, HookError

logger = logging.getLogger("app-operator.charts")

OPTION_CHART = "chart"
OPTION_FETCH = "fetch"
FETCH_EVENT = "chart"


def chart_cache_key(url: str) -> str:
    """Derive the cache directory name from a chart URL."""
    try:
        path = urlparse(url).path
    except ValueError as e:
        raise ConfigError(f"malformed chart url {url!r}: {e}") from e
    name = posixpath.basename(path.rstrip("/"))
    if name.endswith(".tgz"):
        name = name[:-len(".tgz")]
    if name.endswith(".tar.gz"):
        name = name[:-len(".tar.gz")]
    if not name:
        raise ConfigError(f"malformed chart url {url!r}: no chart name in path")
    return name


def translate_chart_path(chart: str, base_path: str,
                         cache_root: Optional[str] = None) -> Tuple[str, str]:
    """
    Pure mapping from a chart reference to (local path, fetch source).

    The fetch source is empty when there is nothing to fetch from.
    """
    if not chart:
        return base_path, ""
    if chart.startswith(("http://", "https://")):
        return os.path.join(cache_root or base_path, chart_cache_key(chart)), chart
    if os.path.isabs(chart):
        return chart, ""
    return os.path.join(base_path, chart), chart


class ChartResolver:
    def __init__(self, settings, hooks):
        self.settings = settings
        self.hooks = hooks

    def resolve(self, resource, base_path: str, release: str = "") -> str:
        s = self.settings
        chart = resource.option(s.annotation(OPTION_CHART))
        chart_path, chart_src = translate_chart_path(chart, base_path, s.cache_root)
        fetch_always = resource.option(s.annotation(OPTION_FETCH)).lower() == "always"
        if os.path.exists(chart_path) and not fetch_always:
            return chart_path
        if not s.FETCH_EXEC:
            raise ChartFetchError(f"chart {chart_path} not exists and no fetch command configured")
        logger.info(f"[{resource.key}] fetching chart {chart or chart_path} -> {chart_path}")
        try:
            self.hooks.run_event(resource, FETCH_EVENT, s.FETCH_EXEC, release, {
                "FETCH_CHART": chart,
                "FETCH_CHART_TO": chart_path,
                "FETCH_CHART_FROM": chart_src,
            })
        except HookError as e:
            raise ChartFetchError(f"failed to fetch chart {chart or chart_path}: {e}") from e
        return chart_path
