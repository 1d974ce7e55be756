"""Plugin block: shell files sourced in place from the package home."""

import glob
import logging
import os
from typing import TYPE_CHECKING

from ..errors import AfxError
from .command import env_lines, run_if
from .models import Plugin

if TYPE_CHECKING:
    from .base import Package

_logging = logging.getLogger(__name__)


def get_sources(plugin: Plugin, pkg: "Package") -> list[str]:
    """Expand every source glob, relative ones under the package home."""
    sources: list[str] = []
    for src in plugin.sources:
        pattern = src if os.path.isabs(src) else os.path.join(pkg.home, src)
        for match in sorted(glob.glob(pattern, recursive=True)):
            if os.path.exists(match) and match not in sources:
                sources.append(match)
    return sources


def installed(plugin: Plugin, pkg: "Package") -> bool:
    return len(get_sources(plugin, pkg)) > 0


def init(plugin: Plugin, pkg: "Package") -> list[str]:
    if plugin.if_ and not run_if(plugin.if_):
        _logging.error(f"{pkg.name}: plugin.if exit code is not zero, so stopped to init package")
        raise AfxError(f"{pkg.name}: returned non-zero value with evaluation of `if` field")

    lines = []
    if plugin.snippet_prepare:
        lines.append(plugin.snippet_prepare.rstrip("\n"))

    sources = get_sources(plugin, pkg)
    if not sources:
        raise AfxError(f"{pkg.name}: failed to get sources")
    lines.extend(f"source {src}" for src in sources)

    lines.extend(env_lines(plugin.env))
    lines.extend(script.rstrip("\n") for script in plugin.scripts)
    if plugin.snippet:
        lines.append(plugin.snippet.rstrip("\n"))
    return lines


__all__ = ["get_sources", "installed", "init"]
