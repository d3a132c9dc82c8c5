"""Installation registry - last known app and OS of each installation."""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from releasewatch.models.installation import Installation
from releasewatch.schemas.update import UpdateCheckRequest
from releasewatch.services.error_reporter import ErrorReporter, error_reporter
from releasewatch.services.usage_store import UsageStore, upsert_replace
from releasewatch.utils.coercion import clamp
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)


class InstallationService:
    """Records installations seen by update checks."""

    def __init__(self, store: UsageStore, reporter: ErrorReporter = error_reporter) -> None:
        self.store = store
        self._reporter = reporter

    async def record(self, request: UpdateCheckRequest) -> bool:
        """Upsert the installation described by an update check.

        Failures are reported, never raised: this runs after the answer was sent.

        Returns:
            True if the row was written
        """
        key = {
            "user_id": clamp(request.id, 255),
            "app_name": clamp(request.app.name, 64),
        }
        values = {
            "app_version": clamp(request.app.version, 64),
            "app_build": clamp(request.app.build, 128),
            "os_platform": clamp(request.os.platform, 64),
            "os_arch": clamp(request.os.arch, 32),
            "os_release": clamp(request.os.release, 128),
            "updated_at": datetime.now(timezone.utc),
        }

        async def work(session: AsyncSession) -> None:
            await upsert_replace(session, Installation, key, values)

        try:
            await self.store.run(work)
        except Exception as e:  # noqa: BLE001 - background task, nothing to answer
            self._reporter.report(e, key, source="installations")
            return False

        logger.debug(
            f"Recorded installation {sanitize_log_message(key['user_id'])} "
            f"({sanitize_log_message(key['app_name'])})"
        )
        return True
