"""Version advisor - decides what to tell an installation about updates.

The advisor is a pure function of the reported build string and the current
release snapshot. Decision order:

1. build string is not a semantic version      -> "unable to determine version"
2. major < 3                                   -> ancient version, upgrade link
3. build string not in the documented format   -> "unknown build format"
4. no release snapshot yet                     -> ask the client to retry later
5. older than the old-stable minor branch      -> obsolete (any channel)
6. stable channel                              -> compare against stable branches
7. beta channel                                -> beta reminder
8. any other channel                           -> experimental notice

On the old-stable branch, being behind and being equal to the old-stable
release give the same answer: only the current-stable release counts as up to
date. A stable build on any other branch, including one ahead of the current
stable release, is told that a new stable version is available.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from releasewatch.services.release_tracker import ReleaseSnapshot
from releasewatch.utils.version import BuildChannel, parse_build_identifier, parse_semver

PRODUCT_NAME = "Companion"
# Application name reported by the tracked product
TRACKED_APP_NAME = "companion"
DOWNLOAD_URL = "https://bitfocus.io/companion"

# Builds older than this major version use a different channel scheme
MINIMUM_SUPPORTED_MAJOR = 3

UNPARSABLE_MESSAGE = "unable to determine version"
UNKNOWN_FORMAT_MESSAGE = "unknown build format"
ANCIENT_MESSAGE = (
    f"This is a very old version of {PRODUCT_NAME}. "
    f"{PRODUCT_NAME} has improved a lot, we strongly recommend updating"
)
BETA_MESSAGE = "Remember, this is a beta version!"
EXPERIMENTAL_MESSAGE = "EXPERIMENTAL: Thank you for testing these experimental features!"

ANCIENT_LINK = f"{DOWNLOAD_URL}?inapp_ancient"
OBSOLETE_LINK = f"{DOWNLOAD_URL}?inapp_obsolete"
STABLE_LINK = f"{DOWNLOAD_URL}?inapp_stable"
BETA_LINK = f"{DOWNLOAD_URL}?inapp_beta"
EXPERIMENTAL_LINK = f"{DOWNLOAD_URL}?inapp_beyond"


class AdviceKind(str, Enum):
    """Which branch of the decision produced an answer."""

    UNPARSABLE = "unparsable"
    ANCIENT = "ancient"
    UNKNOWN_FORMAT = "unknown_format"
    RETRY = "retry"
    OBSOLETE = "obsolete"
    STABLE_UPDATE = "stable_update"
    UP_TO_DATE = "up_to_date"
    BETA = "beta"
    EXPERIMENTAL = "experimental"


@dataclass(frozen=True)
class Advice:
    """Answer to an update check."""

    kind: AdviceKind
    retry: bool
    message: str
    link: Optional[str] = None


def obsolete_message(snapshot: ReleaseSnapshot) -> str:
    return (
        f"This version of {PRODUCT_NAME} is outdated and no longer supported. "
        f"Please update to the latest version v{snapshot.current_stable.version}."
    )


def new_stable_message(snapshot: ReleaseSnapshot) -> str:
    return f"A new stable version (v{snapshot.current_stable.version}) is available."


def _new_stable(snapshot: ReleaseSnapshot) -> Advice:
    return Advice(AdviceKind.STABLE_UPDATE, False, new_stable_message(snapshot), STABLE_LINK)


def advise(build: str, snapshot: Optional[ReleaseSnapshot]) -> Advice:
    """Classify an installed build against the tracked stable releases.

    Args:
        build: Build string reported by the client, e.g. "3.3.1+7001-stable-ee7c3daa"
        snapshot: Current release snapshot, or None if releases are unavailable

    Returns:
        Advice; never raises
    """
    version = parse_semver(build)
    if version is None:
        return Advice(AdviceKind.UNPARSABLE, False, UNPARSABLE_MESSAGE)

    if version.major < MINIMUM_SUPPORTED_MAJOR:
        return Advice(AdviceKind.ANCIENT, False, ANCIENT_MESSAGE, ANCIENT_LINK)

    identifier = parse_build_identifier(build)
    if identifier is None:
        return Advice(AdviceKind.UNKNOWN_FORMAT, False, UNKNOWN_FORMAT_MESSAGE)

    if snapshot is None:
        return Advice(AdviceKind.RETRY, True, "")

    current = snapshot.current_stable.version
    old = snapshot.old_stable.version
    installed = identifier.version

    if installed < old.branch_floor():
        return Advice(AdviceKind.OBSOLETE, False, obsolete_message(snapshot), OBSOLETE_LINK)

    if identifier.channel is BuildChannel.STABLE:
        if installed.minor_branch == old.minor_branch != current.minor_branch:
            # Behind or at the old-stable release: either way the newer branch is available
            return _new_stable(snapshot)

        if installed.minor_branch == current.minor_branch:
            if installed == current:
                return Advice(AdviceKind.UP_TO_DATE, False, "")
            if installed < current:
                return _new_stable(snapshot)

        return _new_stable(snapshot)

    if identifier.channel is BuildChannel.BETA:
        return Advice(AdviceKind.BETA, False, BETA_MESSAGE, BETA_LINK)

    return Advice(AdviceKind.EXPERIMENTAL, False, EXPERIMENTAL_MESSAGE, EXPERIMENTAL_LINK)
