"""
Error taxonomy for a single reconciliation attempt.

Every error below aborts the attempt and leaves the persisted resource as it
was, so the next delivered event retries the whole transition.
"""


class AppOperatorError(Exception):
    """Base class for reconciliation failures."""


class ConfigError(AppOperatorError):
    """Malformed value source or chart reference."""


class ParseError(ConfigError):
    """A value source is not a valid YAML mapping."""


class SourceReadError(AppOperatorError):
    """A value file could not be read."""


class ChartFetchError(AppOperatorError):
    """Chart is missing locally and could not be fetched."""


class HookError(AppOperatorError):
    """A lifecycle hook (or the fetch action) exited unsuccessfully."""

    def __init__(self, event: str, returncode: int):
        super().__init__(f"{event} hook failed (rc={returncode})")
        self.event = event
        self.returncode = returncode


class ReleaseEngineError(AppOperatorError):
    """The release engine rejected an install, update or uninstall."""


class ReleaseNotFoundError(ReleaseEngineError):
    """Uninstall target does not exist; treated as already satisfied."""


class PersistenceError(AppOperatorError):
    """The resource store rejected a read or write (conflict, forbidden, server error)."""
