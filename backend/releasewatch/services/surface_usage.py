"""Surface usage writer.

A report's surfaces are merged in two batches:

- daily: number of surfaces per module for (day, installation, module)
- last seen: one row per (installation, module, serial) with the module's
  surface count, the canonical description and the time it was last reported

Older clients reported serials as hashes. Once a surface has been stored under
its plain serial, rows stored under any of its legacy hashes are removed.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from releasewatch.models.surface_usage import SurfaceDailyUsage, SurfaceUserLastSeen
from releasewatch.services.error_reporter import ErrorReporter, error_reporter
from releasewatch.services.surface_descriptions import canonical_description
from releasewatch.services.usage_normalizer import SurfaceUsageRecord
from releasewatch.services.usage_store import (
    MergeResult,
    UsageStore,
    delete_many,
    record_scope,
    upsert_max,
    utc_day,
)
from releasewatch.utils.identity import legacy_identity_candidates
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)

SURFACE_BATCH_TIMEOUT = 10.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SurfaceUsageWriter:
    """Merges surface records into the surface aggregate tables."""

    def __init__(
        self,
        store: UsageStore,
        reporter: ErrorReporter = error_reporter,
        clock: Callable[[], datetime] = _utcnow,
        timeout: float = SURFACE_BATCH_TIMEOUT,
    ) -> None:
        self.store = store
        self._reporter = reporter
        self._clock = clock
        self.timeout = timeout

    async def write(self, subject_id: str, records: Sequence[SurfaceUsageRecord]) -> MergeResult:
        """Merge the surfaces of one report.

        Args:
            subject_id: Installation identifier
            records: Normalized surfaces

        Returns:
            MergeResult over both batches; an empty report is a successful no-op
        """
        if not records:
            return MergeResult()

        now = self._clock()
        module_counts = Counter(record.module_id for record in records)

        daily = await self._write_daily(subject_id, module_counts, now)
        last_seen = await self._write_last_seen(subject_id, records, module_counts, now)
        return daily + last_seen

    async def _write_daily(
        self, subject_id: str, module_counts: Counter, now: datetime
    ) -> MergeResult:
        day = utc_day(now)

        async def work(session: AsyncSession) -> MergeResult:
            result = MergeResult()
            for module_name, count in module_counts.items():
                try:
                    async with record_scope(session):
                        await upsert_max(
                            session,
                            SurfaceDailyUsage,
                            key={"date": day, "user_id": subject_id, "module_name": module_name},
                            count=count,
                        )
                    result += MergeResult(merged=1)
                except Exception as e:  # noqa: BLE001 - other modules still merge
                    self._reporter.report(
                        e,
                        {"subject": subject_id, "module": module_name, "count": count},
                        source="surface_usage",
                    )
                    result += MergeResult(failed=1)
            return result

        return await self._run(work, "surface daily batch", len(module_counts), subject_id)

    async def _write_last_seen(
        self,
        subject_id: str,
        records: Sequence[SurfaceUsageRecord],
        module_counts: Counter,
        now: datetime,
    ) -> MergeResult:
        async def work(session: AsyncSession) -> MergeResult:
            result = MergeResult()
            for record in records:
                try:
                    async with record_scope(session):
                        await upsert_max(
                            session,
                            SurfaceUserLastSeen,
                            key={
                                "user_id": subject_id,
                                "module_name": record.module_id,
                                "surface_serial": record.serial_id,
                            },
                            count=module_counts[record.module_id],
                            overwrite={
                                "surface_description": canonical_description(record.description),
                                "last_seen": now,
                            },
                        )
                        await self._prune_legacy_rows(session, subject_id, record.serial_id)
                    result += MergeResult(merged=1)
                except Exception as e:  # noqa: BLE001 - other surfaces still merge
                    self._reporter.report(
                        e,
                        {
                            "subject": subject_id,
                            "module": record.module_id,
                            "serial": record.serial_id,
                        },
                        source="surface_usage",
                    )
                    result += MergeResult(failed=1)
            return result

        return await self._run(work, "surface last-seen batch", len(records), subject_id)

    async def _prune_legacy_rows(self, session: AsyncSession, subject_id: str, serial: str) -> None:
        """Delete rows this surface was stored under by older clients."""
        candidates = legacy_identity_candidates(serial)
        if not candidates:
            return

        removed = await delete_many(
            session,
            SurfaceUserLastSeen,
            SurfaceUserLastSeen.user_id == subject_id,
            SurfaceUserLastSeen.surface_serial.in_(candidates),
        )
        if removed:
            logger.debug(f"Replaced {removed} legacy surface rows for {sanitize_log_message(subject_id)}")

    async def _run(self, work, name: str, size: int, subject_id: str) -> MergeResult:
        try:
            return await self.store.run_batch(work, timeout=self.timeout, name=name)
        except Exception as e:  # noqa: BLE001 - a failed batch fails its own records only
            self._reporter.report(e, {"subject": subject_id, "batch": name}, source="surface_usage")
            return MergeResult(failed=size)
