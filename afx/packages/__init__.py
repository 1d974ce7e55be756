"""Package kinds and the operations the executor drives."""

from typing import Iterable

from . import command, plugin
from .base import Orphan, Package, remove_path
from .gist import Gist
from .github import GitHub, GitHubRelease
from .http import HTTP
from .local import Local
from .models import (
    AssetSpec,
    Build,
    Command,
    GitHubOption,
    Link,
    Plugin,
    ReleaseSpec,
    Status,
)


def has_github_release(packages: Iterable[Package]) -> bool:
    """True when a not-yet-installed package downloads from GitHub releases."""
    for pkg in packages:
        if isinstance(pkg, GitHubRelease) and not pkg.installed():
            return True
    return False


def has_sudo_in_build_steps(packages: Iterable[Package]) -> bool:
    for pkg in packages:
        if pkg.command is None or pkg.installed():
            continue
        if command.has_sudo(pkg.command):
            return True
    return False


def by_id(packages: Iterable[Package]) -> dict[str, Package]:
    return {pkg.id: pkg for pkg in packages}


def select(packages: Iterable[Package], ids: Iterable[str]) -> list[Package]:
    """Return the packages whose ID is in ``ids``, keeping config order."""
    wanted = set(ids)
    return [pkg for pkg in packages if pkg.id in wanted]


__all__ = [
    "Package",
    "Orphan",
    "GitHub",
    "GitHubRelease",
    "Gist",
    "HTTP",
    "Local",
    "Status",
    "Link",
    "Build",
    "Command",
    "Plugin",
    "AssetSpec",
    "ReleaseSpec",
    "GitHubOption",
    "by_id",
    "command",
    "has_github_release",
    "has_sudo_in_build_steps",
    "plugin",
    "remove_path",
    "select",
]
