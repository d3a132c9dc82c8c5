"""Prometheus metrics for releasewatch."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

# Update check metrics
update_checks_total = Counter(
    "releasewatch_update_checks_total", "Update checks answered", ["outcome"]
)

# Usage report metrics
usage_reports_total = Counter(
    "releasewatch_usage_reports_total", "Usage reports received", ["shape", "accepted"]
)
usage_records_merged_total = Counter(
    "releasewatch_usage_records_merged_total", "Usage records merged", ["kind"]
)

# Release registry metrics
release_refresh_total = Counter(
    "releasewatch_release_refresh_total", "Release registry refreshes", ["status"]
)
release_refresh_duration = Histogram(
    "releasewatch_release_refresh_duration_seconds",
    "Release registry refresh duration",
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30, 60],
)
stable_release_info = Info(
    "releasewatch_stable_release", "Currently tracked stable releases"
)

# Error telemetry
errors_reported_total = Counter(
    "releasewatch_errors_reported_total", "Errors passed to the error reporter", ["source"]
)


def record_update_check(outcome: str) -> None:
    """Count an update check by advisory outcome."""
    update_checks_total.labels(outcome=outcome).inc()


def record_usage_report(shape: str, accepted: bool) -> None:
    """Count a usage report by wire shape and result."""
    usage_reports_total.labels(shape=shape, accepted=str(accepted).lower()).inc()


def record_release_refresh(success: bool, duration: float) -> None:
    """Record the result and duration of a release registry refresh."""
    release_refresh_total.labels(status="success" if success else "failure").inc()
    release_refresh_duration.observe(duration)


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest()


def get_content_type() -> str:
    """Get Prometheus content type."""
    return CONTENT_TYPE_LATEST
