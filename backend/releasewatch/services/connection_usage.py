"""Connection usage writer.

Each reported module is merged under one identity per reported version plus a
synthetic "all versions" identity (version None) whose count is the sum of the
per-version counts in the report. Identities live in the ``known_modules``
catalogue and are resolved through a process-wide cache; a missing identity is
created with an insert-or-ignore, so concurrent reports creating the same
identity cannot conflict.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from releasewatch.models.module_usage import (
    MODULE_TYPE_CONNECTION,
    KnownModule,
    ModuleDailyUsage,
    ModuleUserLastSeen,
)
from releasewatch.services.error_reporter import ErrorReporter, error_reporter
from releasewatch.services.usage_normalizer import ConnectionUsageRecord
from releasewatch.services.usage_store import (
    MergeResult,
    UsageStore,
    insert_ignore,
    record_scope,
    upsert_max,
    utc_day,
)
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)

CONNECTION_BATCH_TIMEOUT = 20.0

# Stored version of the "all versions" identity
ALL_VERSIONS = ""

ModuleKey = Tuple[str, Optional[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _stored_version(version: Optional[str]) -> str:
    return ALL_VERSIONS if version is None else version


class KnownModuleCache:
    """Maps (module, version) to its known_modules id.

    Ids never change once created, so entries are never invalidated.
    """

    def __init__(self) -> None:
        self._ids: Dict[ModuleKey, int] = {}
        self._loaded: Set[str] = set()

    def get(self, module_name: str, version: Optional[str]) -> Optional[int]:
        return self._ids.get((module_name, version))

    def put(self, module_name: str, version: Optional[str], module_id: int) -> None:
        self._ids[(module_name, version)] = module_id

    def is_loaded(self, module_name: str) -> bool:
        """Whether every catalogued version of the module has been read."""
        return module_name in self._loaded

    def mark_loaded(self, module_name: str) -> None:
        self._loaded.add(module_name)

    def __len__(self) -> int:
        return len(self._ids)


class ConnectionUsageWriter:
    """Merges connection records into the module aggregate tables."""

    def __init__(
        self,
        store: UsageStore,
        cache: Optional[KnownModuleCache] = None,
        reporter: ErrorReporter = error_reporter,
        clock: Callable[[], datetime] = _utcnow,
        timeout: float = CONNECTION_BATCH_TIMEOUT,
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else KnownModuleCache()
        self._reporter = reporter
        self._clock = clock
        self.timeout = timeout

    async def write(
        self, subject_id: str, records: Sequence[ConnectionUsageRecord]
    ) -> MergeResult:
        """Merge the connections of one report.

        Modules are merged one after the other, each in its own batch.

        Args:
            subject_id: Installation identifier
            records: Normalized connection modules

        Returns:
            MergeResult over every identity; an empty report is a successful no-op
        """
        result = MergeResult()
        if not records:
            return result

        now = self._clock()
        for record in records:
            result += await self._write_module(subject_id, record, now)
        return result

    async def _write_module(
        self, subject_id: str, record: ConnectionUsageRecord, now: datetime
    ) -> MergeResult:
        identities: List[Tuple[Optional[str], int]] = [(None, sum(record.version_counts.values()))]
        identities.extend(record.version_counts.items())

        result = MergeResult()
        resolved: List[Tuple[Optional[str], int, int]] = []
        for version, count in identities:
            try:
                module_id = await self.resolve_module_id(record.module_id, version)
            except Exception as e:  # noqa: BLE001 - other versions still merge
                self._reporter.report(
                    e,
                    {"subject": subject_id, "module": record.module_id, "version": version},
                    source="connection_usage",
                )
                result += MergeResult(failed=1)
                continue
            resolved.append((version, module_id, count))

        if not resolved:
            return result

        day = utc_day(now)

        async def work(session: AsyncSession) -> MergeResult:
            merged = MergeResult()
            for version, module_id, count in resolved:
                try:
                    async with record_scope(session):
                        await upsert_max(
                            session,
                            ModuleDailyUsage,
                            key={"date": day, "user_id": subject_id, "module_id": module_id},
                            count=count,
                        )
                        await upsert_max(
                            session,
                            ModuleUserLastSeen,
                            key={"user_id": subject_id, "module_id": module_id},
                            count=count,
                            overwrite={"last_seen": now},
                        )
                    merged += MergeResult(merged=1)
                except Exception as e:  # noqa: BLE001 - other versions still merge
                    self._reporter.report(
                        e,
                        {
                            "subject": subject_id,
                            "module": record.module_id,
                            "version": version,
                            "count": count,
                        },
                        source="connection_usage",
                    )
                    merged += MergeResult(failed=1)
            return merged

        try:
            batch = await self.store.run_batch(
                work, timeout=self.timeout, name=f"connection batch ({record.module_id})"
            )
        except Exception as e:  # noqa: BLE001 - a failed batch fails its own module only
            self._reporter.report(
                e, {"subject": subject_id, "module": record.module_id}, source="connection_usage"
            )
            batch = MergeResult(failed=len(resolved))

        return result + batch

    async def resolve_module_id(self, module_name: str, version: Optional[str]) -> int:
        """Return the catalogue id of a module identity, creating it if needed.

        Runs in its own short transaction, outside any merge batch.
        """
        cached = self.cache.get(module_name, version)
        if cached is not None:
            return cached

        if not self.cache.is_loaded(module_name):
            await self._load_known_versions(module_name)
            cached = self.cache.get(module_name, version)
            if cached is not None:
                return cached

        async def create(session: AsyncSession) -> int:
            values = {
                "module_type": MODULE_TYPE_CONNECTION,
                "module_name": module_name,
                "module_version": _stored_version(version),
            }
            await insert_ignore(session, KnownModule, values)
            result = await session.execute(
                select(KnownModule.id).where(
                    KnownModule.module_type == MODULE_TYPE_CONNECTION,
                    KnownModule.module_name == module_name,
                    KnownModule.module_version == values["module_version"],
                )
            )
            return result.scalar_one()

        module_id = await self.store.run(create)
        self.cache.put(module_name, version, module_id)
        logger.info(
            f"Registered module {sanitize_log_message(module_name)} "
            f"version {sanitize_log_message(version or '*')} (id {module_id})"
        )
        return module_id

    async def _load_known_versions(self, module_name: str) -> None:
        """Fill the cache with every catalogued version of a module."""

        async def load(session: AsyncSession) -> Iterable[Tuple[int, str]]:
            result = await session.execute(
                select(KnownModule.id, KnownModule.module_version).where(
                    KnownModule.module_type == MODULE_TYPE_CONNECTION,
                    KnownModule.module_name == module_name,
                )
            )
            return result.all()

        for module_id, stored_version in await self.store.run(load):
            version = None if stored_version == ALL_VERSIONS else stored_version
            self.cache.put(module_name, version, module_id)
        self.cache.mark_loaded(module_name)
