"""Filesystem locations used by afx."""

import os
from pathlib import Path


def expand_path(path: str) -> str:
    """Expand $VARS and a leading ~ in a user supplied path."""
    return os.path.expanduser(os.path.expandvars(path))


def afx_root() -> Path:
    """Return the install root: $AFX_ROOT or ~/.afx"""
    if os.environ.get("AFX_ROOT"):
        return Path(expand_path(os.environ["AFX_ROOT"]))
    return Path.home() / ".afx"


def config_root() -> Path:
    """Return the config directory: $AFX_CONFIG_ROOT or ~/.config/afx"""
    if os.environ.get("AFX_CONFIG_ROOT"):
        return Path(expand_path(os.environ["AFX_CONFIG_ROOT"]))
    return Path.home() / ".config" / "afx"


def command_path() -> Path:
    """Return the directory relative link destinations land in.

    Priority:
    1. AFX_COMMAND_PATH environment variable (if set)
    2. ~/bin
    """
    if os.environ.get("AFX_COMMAND_PATH"):
        return Path(expand_path(os.environ["AFX_COMMAND_PATH"]))
    return Path.home() / "bin"


def state_path() -> Path:
    return afx_root() / "state.json"


def cache_path() -> Path:
    return afx_root() / "cache.json"
