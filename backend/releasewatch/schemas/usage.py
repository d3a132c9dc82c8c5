"""Pydantic schemas for usage reports.

New fields must be optional so that reports from older clients keep
validating.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from releasewatch.schemas.update import UpdateCheckRequest


class DetailedUsageSurface(BaseModel):
    """One physical surface in a modern usage report."""

    moduleId: str = Field(..., description="Type of surface module used (eg elgato-stream-deck)")
    id: str = Field(..., description="Unique identifier for the surface (eg serial number)")
    description: str = Field(..., description="Human-readable description (eg Stream Deck XL)")


class DetailedUsageConnection(BaseModel):
    """One connection module in a modern usage report.

    Counts are left loosely typed; invalid ones are dropped during
    normalization instead of failing the whole report.
    """

    moduleId: str = Field(..., description="Type of connection module used (eg bmd-atem)")
    counts: Dict[str, Any] = Field(
        default_factory=dict, description="Map of connection versions to count of instances"
    )


class GridSize(BaseModel):
    """Bounds of the button grid in use."""

    minCol: int
    maxCol: int
    minRow: int
    maxRow: int


class FeatureUsage(BaseModel):
    """Feature flags and configuration sizes."""

    # General feature flags
    isBoundToLoopback: bool
    hasAdminPassword: bool
    hasPincodeLockout: bool
    cloudEnabled: bool
    httpsEnabled: bool

    # Protocol usage
    tcpEnabled: bool
    tcpDeprecatedEnabled: bool
    udpEnabled: bool
    udpDeprecatedEnabled: bool
    oscEnabled: bool
    oscDeprecatedEnabled: bool
    rossTalkEnabled: bool
    emberPlusEnabled: bool
    artnetEnabled: bool

    # Usage counts, to get an idea of scale
    connectionCount: Optional[int] = None
    pageCount: int
    buttonCount: int
    triggerCount: int
    surfaceGroupCount: Optional[int] = None
    customVariableCount: int
    expressionVariableCount: int

    gridSize: GridSize
    connectedSatellites: int


class DetailedUsageRequest(UpdateCheckRequest):
    """Body of POST /companion/detailed-usage."""

    uptime: float = Field(..., description="Uptime of the application in seconds")
    surfaces: List[DetailedUsageSurface] = Field(default_factory=list)
    connections: List[DetailedUsageConnection] = Field(default_factory=list)
    features: Optional[FeatureUsage] = Field(default=None, description="Feature usage details")


class LegacyUsageRequest(BaseModel):
    """Body of POST /companion/usage (enumerated legacy shape).

    surfaces is either a map of serial to {type, description} or a list of
    bare surface identifiers. modules maps a module id to either an instance
    count or a map of version to count.
    """

    id: str = Field(..., description="Unique identifier for the installation")
    surfaces: Optional[Union[Dict[str, Any], List[Any]]] = None
    modules: Optional[Dict[str, Any]] = None


class UsageReportResponse(BaseModel):
    """Answer to any usage report."""

    ok: bool = Field(..., description="Indicates if the report was received successfully")
