"""Version parsing utilities for release tags and client build identifiers."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

# Loose semantic version: optional "v"/"=" prefix, optional dash before the
# prerelease part, optional build metadata.
_LOOSE_SEMVER = re.compile(
    r"^\s*[v=\s]*(\d+)\.(\d+)\.(\d+)"
    r"(?:-?([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?\s*$"
)

# First "major[.minor[.patch]]" run anywhere in a string
_COERCE = re.compile(r"(?:^|[^\d])(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?:$|[^\d])")

# Documented client build format, e.g. "3.3.1+7001-stable-ee7c3daa"
_BUILD_IDENTIFIER = re.compile(
    r"^v?(\d+)\.(\d+)\.(\d+)\+(\d+)-(.+)-([0-9a-fA-F]{7,40})$"
)


class SemanticVersion(NamedTuple):
    """major.minor.patch triple; tuple ordering is version ordering."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def minor_branch(self) -> tuple[int, int]:
        return (self.major, self.minor)

    def branch_floor(self) -> "SemanticVersion":
        """First release of this version's minor branch (patch 0)."""
        return SemanticVersion(self.major, self.minor, 0)


class BuildChannel(str, Enum):
    """Release channel encoded in a client build identifier."""

    STABLE = "stable"
    BETA = "beta"
    OTHER = "other"

    @classmethod
    def from_label(cls, label: str) -> "BuildChannel":
        if label == cls.STABLE.value:
            return cls.STABLE
        if label == cls.BETA.value:
            return cls.BETA
        return cls.OTHER


@dataclass(frozen=True)
class BuildIdentifier:
    """Structured form of a client build string."""

    major: int
    minor: int
    patch: int
    build_number: int
    channel: BuildChannel
    commit_hash: str

    @property
    def version(self) -> SemanticVersion:
        return SemanticVersion(self.major, self.minor, self.patch)


def parse_semver(text: str) -> Optional[SemanticVersion]:
    """Parse a loose semantic version string.

    Prerelease and build metadata are accepted but not kept.

    Args:
        text: Version string (e.g., "3.3.1", "v3.3.1", "3.3.1+7001-stable-ee7c3daa")

    Returns:
        SemanticVersion, or None if the string is not a semantic version
    """
    if not isinstance(text, str):
        return None

    match = _LOOSE_SEMVER.match(text)
    if not match:
        return None

    return SemanticVersion(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def coerce_version(text: str) -> Optional[SemanticVersion]:
    """Pull the first version-looking number run out of a free-form string.

    Missing minor/patch parts default to 0, so "companion-v3.2" coerces to 3.2.0.

    Args:
        text: Release tag or name

    Returns:
        SemanticVersion, or None if the string contains no number
    """
    if not text:
        return None

    match = _COERCE.search(text)
    if not match:
        return None

    major, minor, patch = match.groups()
    return SemanticVersion(int(major), int(minor or 0), int(patch or 0))


def parse_build_identifier(build: str) -> Optional[BuildIdentifier]:
    """Parse a client build string in the documented format.

    Format: ``[v]major.minor.patch+buildNumber-channel-hash`` where hash is
    7-40 hex characters.

    Returns:
        BuildIdentifier, or None if the string does not match the format
    """
    if not isinstance(build, str):
        return None

    match = _BUILD_IDENTIFIER.match(build)
    if not match:
        return None

    major, minor, patch, build_number, channel, commit_hash = match.groups()
    return BuildIdentifier(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        build_number=int(build_number),
        channel=BuildChannel.from_label(channel),
        commit_hash=commit_hash.lower(),
    )
