"""Shared utility functions for commands."""

import logging
import sys
from dataclasses import dataclass
from typing import Iterable, NoReturn

import click

from afx.config import load_packages
from afx.env import Env, Input, Variable
from afx.errors import format_error
from afx.logging_config import setup_logging
from afx.packages import (
    GitHubRelease,
    Package,
    by_id,
    command,
    has_github_release,
    has_sudo_in_build_steps,
)
from afx.paths import afx_root, cache_path, command_path, config_root, state_path
from afx.state import Resource, State

_logging = logging.getLogger(__name__)


@dataclass
class Meta:
    """Everything a command needs: declared packages, state and env vault."""

    packages: list[Package]
    state: State
    env: Env


def fail(message: str) -> NoReturn:
    click.echo(format_error(message), err=True)
    sys.exit(1)


def default_variables(packages: list[Package]) -> dict[str, Variable]:
    """Variables every run exports, plus the secrets pending packages need."""
    return {
        "AFX_ROOT": Variable(default=str(afx_root())),
        "AFX_CONFIG_ROOT": Variable(default=str(config_root())),
        "AFX_COMMAND_PATH": Variable(default=str(command_path())),
        "GITHUB_TOKEN": Variable(
            input=Input(
                when=has_github_release(packages),
                message="GitHub token:",
                help="Please set your GitHub API token. Rate limits are strict without it.",
            ),
        ),
        "AFX_SUDO_PASSWORD": Variable(
            input=Input(
                when=has_sudo_in_build_steps(packages),
                message="Sudo password:",
                help="Some build steps need sudo. The password is kept in the afx cache.",
            ),
        ),
    }


def load_meta(ctx: click.Context) -> Meta:
    """Set up logging, then load config, state and the env vault.

    Startup errors propagate to the command, which exits with status 1.
    """
    debug = ctx.obj.get("debug", False) if ctx.obj else False
    setup_logging(debug)

    packages = load_packages(config_root())
    state = State.open(state_path(), packages)
    env = Env(cache_path())
    env.add_all(default_variables(packages))
    return Meta(packages=packages, state=state, env=env)


def filter_by_names(resources: Iterable[Resource], names: Iterable[str]) -> list[Resource]:
    """Keep the resources whose name is in ``names``; all of them when ``names`` is empty."""
    names = set(names)
    resources = list(resources)
    if not names:
        return resources
    unknown = names - {r.name for r in resources}
    for name in sorted(unknown):
        _logging.warning(f"{name}: nothing to do for this package")
    return [r for r in resources if r.name in names]


def packages_for(meta: Meta, resources: Iterable[Resource]) -> list[Package]:
    """Map state resources back to their declared packages, keeping config order."""
    wanted = {r.id for r in resources}
    return [pkg for pkg_id, pkg in by_id(meta.packages).items() if pkg_id in wanted]


def ask_secrets(meta: Meta, packages: list[Package], rebuild: bool = False) -> None:
    """Prompt for the secrets ``packages`` need before any work starts.

    With ``rebuild`` set, installed packages count too, since their homes
    are about to be removed and fetched again.
    """
    if rebuild:
        needs_token = any(isinstance(pkg, GitHubRelease) for pkg in packages)
        needs_sudo = any(pkg.command is not None and command.has_sudo(pkg.command) for pkg in packages)
    else:
        needs_token = has_github_release(packages)
        needs_sudo = has_sudo_in_build_steps(packages)
    meta.env.ask_when({"GITHUB_TOKEN": needs_token, "AFX_SUDO_PASSWORD": needs_sudo})


def confirm(action: str, names: list[str], yes: bool) -> bool:
    if yes:
        return True
    click.echo(f"The following packages will be {action}:")
    for name in names:
        click.echo(f"  - {name}")
    return click.confirm("OK to proceed?", default=True)


__all__ = [
    "Meta",
    "ask_secrets",
    "confirm",
    "default_variables",
    "fail",
    "filter_by_names",
    "load_meta",
    "packages_for",
]
