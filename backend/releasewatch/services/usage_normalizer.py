"""Usage normalizer - turns any supported report shape into canonical records.

Three wire shapes are accepted:

- modern: typed ``surfaces``/``connections`` arrays (already validated)
- enumerated legacy: ``surfaces`` as a serial -> {type, description} map or a
  list of bare identifiers, ``modules`` as module -> count or
  module -> {version -> count}
- free-form legacy blob: the same data under short keys (``i`` subject,
  ``s``/``d`` surfaces, ``mv``/``m`` modules), with no guarantees on types

Each entry is converted on its own. A malformed entry is reported and skipped;
the rest of the report still goes through.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from releasewatch.exceptions import MalformedInputError
from releasewatch.models.module_usage import MODULE_NAME_MAX_LENGTH, MODULE_VERSION_MAX_LENGTH
from releasewatch.models.surface_usage import (
    SURFACE_DESCRIPTION_MAX_LENGTH,
    SURFACE_MODULE_MAX_LENGTH,
    SURFACE_SERIAL_MAX_LENGTH,
)
from releasewatch.schemas.usage import DetailedUsageConnection, DetailedUsageSurface
from releasewatch.services.error_reporter import ErrorReporter, error_reporter
from releasewatch.utils.coercion import clamp, coerce_count, coerce_str

logger = logging.getLogger(__name__)

SUBJECT_ID_MAX_LENGTH = 255

UNKNOWN_SURFACE_MODULE = "unknown"
LEGACY_SURFACE_MODULE = "legacy"
UNKNOWN_SURFACE_DESCRIPTION = "Unknown"
UNKNOWN_MODULE_VERSION = "unknown"


@dataclass(frozen=True)
class SurfaceUsageRecord:
    """One physical surface seen in a report."""

    module_id: str
    serial_id: str
    description: str


@dataclass(frozen=True)
class ConnectionUsageRecord:
    """Instance counts per version of one connection module."""

    module_id: str
    version_counts: Mapping[str, int]


@dataclass
class NormalizedUsage:
    """Canonical content of a usage report."""

    subject_id: str
    surfaces: List[SurfaceUsageRecord] = field(default_factory=list)
    connections: List[ConnectionUsageRecord] = field(default_factory=list)
    skipped: int = 0


@dataclass(frozen=True)
class ModernUsagePayload:
    subject_id: str
    surfaces: Sequence[DetailedUsageSurface]
    connections: Sequence[DetailedUsageConnection]


@dataclass(frozen=True)
class EnumeratedUsagePayload:
    subject_id: str
    surfaces: Union[Dict[str, Any], List[Any], None]
    modules: Optional[Dict[str, Any]]


@dataclass(frozen=True)
class LegacyBlobPayload:
    body: Any


UsagePayload = Union[ModernUsagePayload, EnumeratedUsagePayload, LegacyBlobPayload]


def make_surface_record(module_id: str, serial: str, description: str) -> SurfaceUsageRecord:
    """Build a surface record with every field clamped to its column size."""
    return SurfaceUsageRecord(
        module_id=clamp(module_id, SURFACE_MODULE_MAX_LENGTH),
        serial_id=clamp(serial, SURFACE_SERIAL_MAX_LENGTH),
        description=clamp(description, SURFACE_DESCRIPTION_MAX_LENGTH),
    )


class UsageNormalizer:
    """Converts usage payloads into NormalizedUsage."""

    def __init__(self, reporter: ErrorReporter = error_reporter) -> None:
        self._reporter = reporter

    def normalize(self, payload: UsagePayload) -> NormalizedUsage:
        """Normalize a payload of any supported shape.

        Raises:
            MalformedInputError: If the report has no usable subject identifier
        """
        if isinstance(payload, ModernUsagePayload):
            usage = self._normalize_modern(payload)
        elif isinstance(payload, EnumeratedUsagePayload):
            usage = self._normalize_enumerated(payload)
        elif isinstance(payload, LegacyBlobPayload):
            usage = self._normalize_blob(payload.body)
        else:
            raise MalformedInputError(f"Unsupported usage payload: {type(payload).__name__}")

        logger.debug(
            f"Normalized {type(payload).__name__}: {len(usage.surfaces)} surfaces, "
            f"{len(usage.connections)} connections, {usage.skipped} skipped"
        )
        return usage

    # Shape handlers

    def _normalize_modern(self, payload: ModernUsagePayload) -> NormalizedUsage:
        usage = NormalizedUsage(subject_id=self._subject(payload.subject_id))

        for surface in payload.surfaces:
            usage.surfaces.append(
                make_surface_record(surface.moduleId, surface.id, surface.description)
            )

        for connection in payload.connections:
            self._add_connection(usage, connection.moduleId, connection.counts, nested_only=True)

        return usage

    def _normalize_enumerated(self, payload: EnumeratedUsagePayload) -> NormalizedUsage:
        usage = NormalizedUsage(subject_id=self._subject(payload.subject_id))
        self._add_surfaces(usage, payload.surfaces, "surfaces")
        self._add_connections(usage, payload.modules, "modules")
        return usage

    def _normalize_blob(self, body: Any) -> NormalizedUsage:
        if not isinstance(body, dict):
            raise MalformedInputError("Usage report is not an object", field="body")

        usage = NormalizedUsage(subject_id=self._subject(body.get("i")))

        # Detailed surface map takes precedence over the older hash list
        if body.get("s"):
            self._add_surfaces(usage, body["s"], "s")
        elif body.get("d"):
            self._add_surfaces(usage, body["d"], "d")

        # Per-version counts take precedence over plain counts
        if body.get("mv"):
            self._add_connections(usage, body["mv"], "mv")
        elif body.get("m"):
            self._add_connections(usage, body["m"], "m")

        return usage

    # Field handlers

    def _subject(self, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise MalformedInputError("Missing installation identifier", field="id")
        return clamp(value, SUBJECT_ID_MAX_LENGTH)

    def _add_surfaces(self, usage: NormalizedUsage, value: Any, field_name: str) -> None:
        if not value:
            return

        if isinstance(value, dict):
            for serial, info in value.items():
                if not serial or not info:
                    continue
                self._guard(usage, field_name, serial, lambda: self._surface_from_info(serial, info))
        elif isinstance(value, list):
            for item in value:
                if not item:
                    continue
                self._guard(usage, field_name, item, lambda: self._surface_from_identifier(item))
        else:
            self._skip(usage, MalformedInputError("Unexpected surfaces payload", field_name, value))

    def _surface_from_info(self, serial: Any, info: Any) -> SurfaceUsageRecord:
        serial_id = coerce_str(serial)
        if serial_id is None:
            raise MalformedInputError("Invalid surface serial", "serial", serial)
        if not isinstance(info, dict):
            raise MalformedInputError("Invalid surface info", "info", info)

        return make_surface_record(
            coerce_str(info.get("type")) or UNKNOWN_SURFACE_MODULE,
            serial_id,
            coerce_str(info.get("description")) or UNKNOWN_SURFACE_DESCRIPTION,
        )

    def _surface_from_identifier(self, item: Any) -> SurfaceUsageRecord:
        serial_id = coerce_str(item)
        if serial_id is None:
            raise MalformedInputError("Invalid surface identifier", "serial", item)
        return make_surface_record(LEGACY_SURFACE_MODULE, serial_id, UNKNOWN_SURFACE_DESCRIPTION)

    def _add_connections(self, usage: NormalizedUsage, value: Any, field_name: str) -> None:
        if not value:
            return

        if not isinstance(value, dict):
            self._skip(usage, MalformedInputError("Unexpected modules payload", field_name, value))
            return

        for module_id, counts in value.items():
            if not module_id or not counts:
                continue
            self._add_connection(usage, module_id, counts)

    def _add_connection(
        self, usage: NormalizedUsage, module_id: Any, counts: Any, nested_only: bool = False
    ) -> None:
        """Add one module, given either a plain count or a version -> count map."""
        name = coerce_str(module_id)
        if name is None:
            self._skip(usage, MalformedInputError("Invalid module id", "moduleId", module_id))
            return

        version_counts: Dict[str, int] = {}
        if isinstance(counts, dict):
            for version, count in counts.items():
                version_key = coerce_str(version)
                parsed = coerce_count(count)
                if version_key is None or parsed is None:
                    self._skip(
                        usage,
                        MalformedInputError("Invalid module version count", "counts", {version: count}),
                        {"module": name},
                    )
                    continue
                version_key = clamp(version_key, MODULE_VERSION_MAX_LENGTH)
                version_counts[version_key] = version_counts.get(version_key, 0) + parsed
        elif not nested_only:
            parsed = coerce_count(counts)
            if parsed is None:
                self._skip(usage, MalformedInputError("Invalid module count", "count", counts), {"module": name})
                return
            version_counts[UNKNOWN_MODULE_VERSION] = parsed
        else:
            self._skip(usage, MalformedInputError("Invalid module counts", "counts", counts), {"module": name})
            return

        if version_counts:
            usage.connections.append(
                ConnectionUsageRecord(
                    module_id=clamp(name, MODULE_NAME_MAX_LENGTH),
                    version_counts=version_counts,
                )
            )

    # Error isolation

    def _guard(self, usage: NormalizedUsage, field_name: str, entry: Any, convert) -> None:
        """Run one surface conversion, skipping the entry if it fails."""
        try:
            usage.surfaces.append(convert())
        except Exception as e:  # noqa: BLE001 - one bad entry must not drop the report
            self._skip(usage, e, {"field": field_name, "entry": entry})

    def _skip(
        self, usage: NormalizedUsage, error: Exception, context: Optional[Dict[str, Any]] = None
    ) -> None:
        usage.skipped += 1
        details = {"subject": usage.subject_id, **(context or {})}
        if isinstance(error, MalformedInputError) and error.field:
            details.setdefault("field", error.field)
            details.setdefault("value", error.value)
        self._reporter.report(error, details, source="usage_normalizer")


# Process-wide normalizer
usage_normalizer = UsageNormalizer()
