"""Custom exceptions for releasewatch.

None of these reach a client. Update checks and usage reports degrade to a
structured answer; the exceptions exist so failures can be told apart in logs
and in the error reporter.
"""

from typing import Any, Dict, Optional


class ReleasewatchError(Exception):
    """Base class for releasewatch errors."""
    pass


class MalformedInputError(ReleasewatchError):
    """Raised when a build string or usage field cannot be interpreted.

    Carries the offending field name and value so the error reporter can
    record what the client actually sent.
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(message)


class UpstreamUnavailableError(ReleasewatchError):
    """Raised when the release registry cannot be queried."""
    pass


class NoStableReleasesError(UpstreamUnavailableError):
    """Raised when the registry answers but no release qualifies as stable."""
    pass


class PersistenceError(ReleasewatchError):
    """Raised when a usage merge or its enclosing batch fails.

    Raised on batch timeouts and unsupported backends. ``context`` describes
    the failed scope and is merged into the error report.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(message)
