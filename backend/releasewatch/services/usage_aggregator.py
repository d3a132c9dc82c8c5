"""Usage aggregator - merges normalized reports into the aggregate tables.

A report is split into independent branches (surfaces, connections and, for
modern reports, the feature snapshot) that run concurrently. Inside a branch
records are merged one at a time. Each branch returns a MergeResult and the
report is accepted only if every branch is ok; since all merges are maxima,
a client that resends a rejected report cannot double count.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker

from releasewatch.schemas.update import AppInfo, OsInfo
from releasewatch.schemas.usage import FeatureUsage
from releasewatch.services.connection_usage import ConnectionUsageWriter, KnownModuleCache
from releasewatch.services.error_reporter import ErrorReporter, error_reporter
from releasewatch.services.feature_usage import FeatureUsageWriter
from releasewatch.services.metrics import usage_records_merged_total
from releasewatch.services.surface_usage import SurfaceUsageWriter
from releasewatch.services.usage_normalizer import (
    ConnectionUsageRecord,
    NormalizedUsage,
    SurfaceUsageRecord,
)
from releasewatch.services.usage_store import MergeResult, UsageStore
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureReport:
    """Feature snapshot of a modern report with the app and OS it came from."""

    app: AppInfo
    os: OsInfo
    features: FeatureUsage


class UsageAggregator:
    """Entry point for merging usage reports."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        reporter: ErrorReporter = error_reporter,
        module_cache: Optional[KnownModuleCache] = None,
    ) -> None:
        self.store = UsageStore(session_factory)
        self._reporter = reporter
        self.surfaces = SurfaceUsageWriter(self.store, reporter=reporter)
        self.connections = ConnectionUsageWriter(self.store, cache=module_cache, reporter=reporter)
        self.features = FeatureUsageWriter(self.store)

    async def write_surfaces(
        self, subject_id: str, records: Sequence[SurfaceUsageRecord]
    ) -> MergeResult:
        """Merge surface records; see SurfaceUsageWriter."""
        result = await self._guarded("surfaces", subject_id, self.surfaces.write(subject_id, records))
        usage_records_merged_total.labels(kind="surface").inc(result.merged)
        return result

    async def write_connections(
        self, subject_id: str, records: Sequence[ConnectionUsageRecord]
    ) -> MergeResult:
        """Merge connection records; see ConnectionUsageWriter."""
        result = await self._guarded(
            "connections", subject_id, self.connections.write(subject_id, records)
        )
        usage_records_merged_total.labels(kind="connection").inc(result.merged)
        return result

    async def write_features(self, subject_id: str, report: FeatureReport) -> MergeResult:
        """Replace the feature snapshot of an installation."""
        result = await self._guarded(
            "features",
            subject_id,
            self.features.write(subject_id, report.app, report.os, report.features),
        )
        usage_records_merged_total.labels(kind="features").inc(result.merged)
        return result

    async def submit_usage_report(
        self,
        subject_id: str,
        surfaces: Sequence[SurfaceUsageRecord],
        connections: Sequence[ConnectionUsageRecord],
        features: Optional[FeatureReport] = None,
    ) -> bool:
        """Merge a whole report.

        Args:
            subject_id: Installation identifier
            surfaces: Normalized surfaces
            connections: Normalized connection modules
            features: Optional feature snapshot (modern reports only)

        Returns:
            True if every part was merged; False asks the client to resend
        """
        branches = [
            self.write_surfaces(subject_id, surfaces),
            self.write_connections(subject_id, connections),
        ]
        if features is not None:
            branches.append(self.write_features(subject_id, features))

        results = await asyncio.gather(*branches)

        total = MergeResult()
        for result in results:
            total += result

        subject = sanitize_log_message(subject_id)
        if total.ok:
            logger.debug(f"Merged usage report for {subject}: {total.merged} records")
        else:
            logger.warning(
                f"Usage report for {subject} partially failed: "
                f"{total.merged} merged, {total.failed} failed"
            )
        return total.ok

    async def submit_normalized(
        self, usage: NormalizedUsage, features: Optional[FeatureReport] = None
    ) -> bool:
        """Merge the output of the usage normalizer."""
        return await self.submit_usage_report(
            usage.subject_id, usage.surfaces, usage.connections, features
        )

    async def _guarded(self, branch: str, subject_id: str, work) -> MergeResult:
        """Await one branch, turning an escaped exception into a failed result."""
        try:
            return await work
        except Exception as e:  # noqa: BLE001 - a failed branch must not cancel its siblings
            self._reporter.report(e, {"subject": subject_id, "branch": branch}, source="usage_aggregator")
            return MergeResult(failed=1)
