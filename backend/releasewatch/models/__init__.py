"""Database models for releasewatch."""

from releasewatch.models.installation import Installation
from releasewatch.models.feature_usage import InstallationFeatures
from releasewatch.models.surface_usage import SurfaceDailyUsage, SurfaceUserLastSeen
from releasewatch.models.module_usage import KnownModule, ModuleDailyUsage, ModuleUserLastSeen

__all__ = [
    "Installation",
    "InstallationFeatures",
    "SurfaceDailyUsage",
    "SurfaceUserLastSeen",
    "KnownModule",
    "ModuleDailyUsage",
    "ModuleUserLastSeen",
]
