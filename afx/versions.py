"""Release tag comparison utilities."""

import re

from packaging import version as pkg_version

# Tags that never pin a concrete version.
FLOATING_TAGS = {"", "latest", "stable", "nightly"}


def extract_version_number(tag: str) -> str:
    """Extract the version number from a release tag such as ``v1.2.3``."""
    if not tag:
        return ""

    patterns = [
        r"v?(\d+\.\d+\.\d+(?:[-+.][0-9A-Za-z.-]+)?)",  # v1.2.3, 1.2.3-rc.1
        r"v?(\d+\.\d+)",  # v1.2
        r"v?(\d+)",  # v1
    ]

    for pattern in patterns:
        match = re.search(pattern, tag)
        if match:
            return match.group(1)

    return ""


def parse_tag(tag: str) -> pkg_version.Version | None:
    number = extract_version_number(tag)
    if not number:
        return None
    try:
        return pkg_version.Version(number)
    except pkg_version.InvalidVersion:
        return None


def compare_versions(version1: str, version2: str) -> int:
    """Compare two release tags. Returns -1, 0, or 1.

    Tags that do not parse as versions are compared by string equality
    only: equal tags give 0 and anything else gives -1.
    """
    v1 = parse_tag(version1)
    v2 = parse_tag(version2)

    if v1 is None or v2 is None:
        return 0 if version1 == version2 else -1

    if v1 < v2:
        return -1
    elif v1 > v2:
        return 1
    else:
        return 0


def describe_update(current: str, latest: str) -> tuple[str, bool]:
    """Return the check message for ``current`` against ``latest``.

    The second element is True when the message needs no highlighting.
    """
    if current in FLOATING_TAGS:
        return f"up-to-date ({current or 'latest'} -> {latest})", True
    if compare_versions(current, latest) < 0:
        return f"new! {current} -> {latest}", False
    return f"up-to-date ({current})", True


__all__ = [
    "FLOATING_TAGS",
    "compare_versions",
    "describe_update",
    "extract_version_number",
    "parse_tag",
]
