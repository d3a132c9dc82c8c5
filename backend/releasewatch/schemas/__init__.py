"""Pydantic schemas for API validation."""

from releasewatch.schemas.update import (
    AppInfo,
    OsInfo,
    UpdateCheckRequest,
    UpdateCheckResponse,
    LegacyUpdateCheckRequest,
    LegacyUpdateCheckResponse,
)
from releasewatch.schemas.usage import (
    DetailedUsageSurface,
    DetailedUsageConnection,
    FeatureUsage,
    GridSize,
    DetailedUsageRequest,
    LegacyUsageRequest,
    UsageReportResponse,
)

__all__ = [
    "AppInfo",
    "OsInfo",
    "UpdateCheckRequest",
    "UpdateCheckResponse",
    "LegacyUpdateCheckRequest",
    "LegacyUpdateCheckResponse",
    "DetailedUsageSurface",
    "DetailedUsageConnection",
    "FeatureUsage",
    "GridSize",
    "DetailedUsageRequest",
    "LegacyUsageRequest",
    "UsageReportResponse",
]
