"""Tests for version parsing utilities (releasewatch/utils/version.py).

Covers:
- Loose semantic version parsing
- Version coercion from release tags
- Build identifier parsing and channels
- Minor branch helpers
"""

import pytest

from releasewatch.utils.version import (
    BuildChannel,
    SemanticVersion,
    coerce_version,
    parse_build_identifier,
    parse_semver,
)


class TestParseSemver:
    """Test suite for parse_semver()."""

    def test_parses_standard_semver(self):
        """Test parses standard semantic version."""
        assert parse_semver("1.2.3") == (1, 2, 3)
        assert parse_semver("10.20.30") == (10, 20, 30)

    def test_parses_prefix_and_metadata(self):
        """Test accepts v prefix, prerelease and build metadata."""
        assert parse_semver("v3.3.1") == (3, 3, 1)
        assert parse_semver("3.3.1-beta.2") == (3, 3, 1)
        assert parse_semver("3.3.1+7001-stable-ee7c3daa") == (3, 3, 1)

    def test_rejects_non_versions(self):
        """Test returns None for strings that are not versions."""
        assert parse_semver("not-a-version") is None
        assert parse_semver("3.3") is None
        assert parse_semver("") is None
        assert parse_semver(None) is None

    def test_versions_order_numerically(self):
        """Test tuple ordering follows version ordering."""
        assert parse_semver("3.10.0") > parse_semver("3.9.12")
        assert str(SemanticVersion(3, 2, 9)) == "3.2.9"


class TestCoerceVersion:
    """Test suite for coerce_version()."""

    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("3.3.1", (3, 3, 1)),
            ("companion-v3.2", (3, 2, 0)),
            ("v4", (4, 0, 0)),
            ("Release 3.1.4 (final)", (3, 1, 4)),
        ],
    )
    def test_coerces_tags(self, tag, expected):
        """Test pulls the first version out of a tag."""
        assert coerce_version(tag) == expected

    def test_no_number(self):
        """Test returns None when there is no number."""
        assert coerce_version("latest") is None
        assert coerce_version("") is None


class TestParseBuildIdentifier:
    """Test suite for parse_build_identifier()."""

    def test_parses_stable_build(self):
        """Test parses every part of a stable build."""
        build = parse_build_identifier("3.3.1+7001-stable-ee7c3daa")
        assert build is not None
        assert build.version == (3, 3, 1)
        assert build.build_number == 7001
        assert build.channel is BuildChannel.STABLE
        assert build.commit_hash == "ee7c3daa"

    def test_beta_and_other_channels(self):
        """Test channel labels map to stable/beta/other."""
        assert parse_build_identifier("3.3.0+6990-beta-1234567ab").channel is BuildChannel.BETA
        assert parse_build_identifier("3.4.0+7100-feat-x-abcdef0").channel is BuildChannel.OTHER

    def test_hash_length_bounds(self):
        """Test hash must be 7-40 hex characters."""
        assert parse_build_identifier("3.3.1+1-stable-abcdef") is None
        assert parse_build_identifier("3.3.1+1-stable-" + "a" * 41) is None
        assert parse_build_identifier("3.3.1+1-stable-" + "a" * 40) is not None
        assert parse_build_identifier("3.3.1+1-stable-zzzzzzz") is None

    def test_rejects_other_formats(self):
        """Test plain versions are not build identifiers."""
        assert parse_build_identifier("3.3.1") is None
        assert parse_build_identifier("3.3.1-beta") is None

    def test_commit_hash_lowercased(self):
        """Test commit hash is normalized to lowercase."""
        assert parse_build_identifier("3.3.1+7001-stable-EE7C3DAA").commit_hash == "ee7c3daa"


class TestMinorBranch:
    """Test suite for minor branch helpers."""

    def test_minor_branch_and_floor(self):
        """Test branch key and floor version."""
        version = SemanticVersion(3, 2, 9)
        assert version.minor_branch == (3, 2)
        assert version.branch_floor() == (3, 2, 0)
