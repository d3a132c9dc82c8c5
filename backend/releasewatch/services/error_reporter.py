"""Error telemetry sink.

Failures that must not reach a client (bad payload entries, failed merges,
registry outages) are handed to the error reporter. Reporting is
fire-and-forget: it never raises and never awaits, so it is safe to call from
inside exception handlers on the request path.
"""

import logging
from typing import Any, Mapping, Optional

from releasewatch.exceptions import PersistenceError
from releasewatch.services.metrics import errors_reported_total
from releasewatch.utils.security import sanitize_log_context, sanitize_log_message

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Records handled errors with their context."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def report(
        self,
        error: BaseException,
        context: Optional[Mapping[str, Any]] = None,
        source: str = "unknown",
    ) -> None:
        """Report a handled error.

        Args:
            error: The exception that was caught
            context: Extra data describing what was being processed
            source: Short label of the reporting component, used as metric label
        """
        try:
            errors_reported_total.labels(source=source).inc()
            if isinstance(error, PersistenceError) and error.context:
                context = {**error.context, **(context or {})}
            details = sanitize_log_context(context)
            message = f"[{source}] {type(error).__name__}: {sanitize_log_message(str(error))}"
            if details:
                message = f"{message} context={details}"
            self._log.error(
                message,
                exc_info=(type(error), error, error.__traceback__),
                extra={"error_context": details},
            )
        except Exception:  # noqa: BLE001 - the reporter must never fail its caller
            logger.debug("Error reporter failed", exc_info=True)


# Process-wide reporter
error_reporter = ErrorReporter()
