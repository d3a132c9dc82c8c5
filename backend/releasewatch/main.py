"""releasewatch - Update advisory and usage telemetry service."""

import logging
import os
import tomllib
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from releasewatch.db import init_db
from releasewatch.services.release_tracker import release_tracker
from releasewatch.services.scheduler import scheduler_service


def get_version() -> str:
    """Read version from pyproject.toml (single source of truth)."""
    try:
        # pyproject.toml sits at the repository root, two levels above the package
        package_dir = Path(__file__).parent.resolve()
        pyproject_path = package_dir.parent.parent / "pyproject.toml"

        if not pyproject_path.exists():
            logger.warning(f"pyproject.toml not found at {pyproject_path}")
            return "0.0.0-dev"

        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return data["project"]["version"]
    except (FileNotFoundError, KeyError) as e:
        logger.warning(f"Could not read version from pyproject.toml: {e}")
        return "0.0.0-dev"


# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Filter to exclude health check endpoints from access logs
class EndpointFilter(logging.Filter):
    """Filter to exclude specific endpoints from Granian access logs."""

    def __init__(self, excluded_paths: list[str]) -> None:
        super().__init__()
        self.excluded_paths = excluded_paths

    def filter(self, record: logging.LogRecord) -> bool:
        """Return False if the log record is for an excluded endpoint."""
        message = record.getMessage()
        return not any(path in message for path in self.excluded_paths)


logging.getLogger("granian.access").addFilter(EndpointFilter(["/health", "/metrics"]))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Starting releasewatch...")

    await init_db()
    logger.info("Database initialized")

    # Blocks until the first release refresh has been attempted
    await scheduler_service.start()

    yield

    await scheduler_service.stop()
    logger.info("Shutting down releasewatch...")


app = FastAPI(
    title="releasewatch",
    description="Update advisory and usage telemetry for client installations",
    version=get_version(),
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Generic exception handler to prevent stack trace exposure.

    In debug mode (RELEASEWATCH_DEBUG=true) the error details are returned.
    Otherwise clients get a generic message; full details are always logged.
    """
    from releasewatch.utils.security import sanitize_log_message

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {sanitize_log_message(str(exc))}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "client": request.client.host if request.client else "unknown",
        },
    )

    if os.getenv("RELEASEWATCH_DEBUG", "false").lower() == "true":
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "type": type(exc).__name__, "debug": True},
        )

    return JSONResponse(
        status_code=500,
        content={"detail": "An internal error occurred."},
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint, with the tracked releases if known."""
    snapshot = release_tracker.get_snapshot()
    releases = None
    if snapshot is not None:
        releases = {
            "current": str(snapshot.current_stable.version),
            "old": str(snapshot.old_stable.version),
            "fetched_at": snapshot.fetched_at.isoformat(),
        }

    return {
        "status": "healthy",
        "service": "releasewatch",
        "releases": releases,
        "release_error": release_tracker.last_error,
        "scheduler": scheduler_service.get_status(),
    }


# Prometheus metrics endpoint
@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    from releasewatch.services.metrics import get_content_type, get_metrics

    return Response(content=get_metrics(), media_type=get_content_type())


# API routes
from releasewatch.api import api_router  # noqa: E402

app.include_router(api_router)


if __name__ == "__main__":
    import subprocess
    import sys

    # Use same server as production (Granian) for consistency
    cmd = [
        "granian",
        "--interface",
        "asgi",
        "--host",
        "0.0.0.0",
        "--port",
        os.getenv("PORT", "8080"),
        "releasewatch.main:app",
    ]

    sys.exit(subprocess.run(cmd).returncode)
