"""Pydantic schemas for update checks."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class AppInfo(BaseModel):
    """Application reported by an installation."""

    name: str = Field(..., description="Name of the application")
    version: str = Field(..., description="Current version of the application")
    build: str = Field(..., description="Full build number or identifier")


class OsInfo(BaseModel):
    """Operating system reported by an installation."""

    platform: str = Field(..., description="Operating system platform")
    arch: str = Field(..., description="System architecture")
    release: str = Field(..., description="OS release version")


class UpdateCheckRequest(BaseModel):
    """Body of POST /updates."""

    id: str = Field(..., description="Unique identifier for the installation")
    app: AppInfo
    os: OsInfo


class UpdateCheckResponse(BaseModel):
    """Answer to an update check."""

    ok: bool = Field(
        ..., description="Indicates if the check was successful, or should be retried later"
    )
    message: str = Field(..., description="Update message")
    link: Optional[str] = Field(default=None, description="Download URL")


class LegacyUpdateCheckRequest(BaseModel):
    """Body of POST /updates-old (flat field names)."""

    id: str = Field(..., description="Unique identifier for the installation")

    app_name: str = Field(..., description="Name of the application")
    app_version: str = Field(..., description="Current version of the application")
    app_build: str = Field(..., description="Full build number or identifier")

    platform: str = Field(..., description="Operating system platform")
    arch: str = Field(..., description="System architecture")
    release: str = Field(..., description="OS release version")

    # Sent by old clients, ignored
    tz: Any = None
    cpus: Any = None
    type: Any = None

    def to_update_check(self) -> UpdateCheckRequest:
        """Convert to the current request shape."""
        return UpdateCheckRequest(
            id=self.id,
            app=AppInfo(name=self.app_name, version=self.app_version, build=self.app_build),
            os=OsInfo(platform=self.platform, arch=self.arch, release=self.release),
        )


class LegacyUpdateCheckResponse(BaseModel):
    """Answer to a legacy update check (no retry flag)."""

    message: str = Field(..., description="Update message")
    link: Optional[str] = Field(default=None, description="Download URL")
