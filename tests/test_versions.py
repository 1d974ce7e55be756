"""Tests for release tag comparison."""

from afx.versions import compare_versions, describe_update, extract_version_number


class TestExtractVersionNumber:
    def test_common_tags(self):
        assert extract_version_number("v1.2.3") == "1.2.3"
        assert extract_version_number("1.2.3-rc.1") == "1.2.3-rc.1"
        assert extract_version_number("release-2.0") == "2.0"
        assert extract_version_number("v7") == "7"

    def test_no_number(self):
        assert extract_version_number("") == ""
        assert extract_version_number("nightly") == ""


class TestCompareVersions:
    def test_ordering(self):
        assert compare_versions("v1.0.0", "v2.0.0") == -1
        assert compare_versions("v2.0.0", "v1.9.9") == 1
        assert compare_versions("v1.2.3", "1.2.3") == 0

    def test_prerelease_is_older(self):
        assert compare_versions("v1.0.0-rc.1", "v1.0.0") == -1

    def test_unparseable_tags(self):
        assert compare_versions("nightly", "nightly") == 0
        assert compare_versions("nightly", "v1.0.0") == -1


class TestDescribeUpdate:
    """Messages shown by ``afx check``."""

    def test_newer_release(self):
        message, no_color = describe_update("v1.0.0", "v1.1.0")
        assert message == "new! v1.0.0 -> v1.1.0"
        assert no_color is False

    def test_up_to_date(self):
        message, no_color = describe_update("v1.1.0", "v1.1.0")
        assert message == "up-to-date (v1.1.0)"
        assert no_color is True

    def test_floating_tag(self):
        message, no_color = describe_update("", "v3.0.0")
        assert message == "up-to-date (latest -> v3.0.0)"
        assert no_color is True
