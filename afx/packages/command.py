"""Command block: build steps, symlinks and shell init for binaries."""

import glob
import json
import logging
import os
import re
import shlex
import subprocess
from typing import TYPE_CHECKING, Mapping

from ..archive import is_executable, make_executable
from ..errors import AfxError, BuildError, LinkError, MultiError
from ..execution import run_command_async
from ..paths import command_path, expand_path
from .models import Command, Link

if TYPE_CHECKING:
    from .base import Package

_logging = logging.getLogger(__name__)

_VAR = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


def shell() -> str:
    return os.environ.get("AFX_SHELL") or "bash"


def shell_quote(value: str) -> str:
    """Double-quote ``value`` for an ``export`` or ``alias`` line."""
    return json.dumps(value, ensure_ascii=False)


def env_lines(env: Mapping[str, str]) -> list[str]:
    lines = []
    for key, value in env.items():
        if key == "PATH":
            # never clobber PATH
            value = f"$PATH:{expand_path(value)}"
        lines.append(f"export {key}={shell_quote(value)}")
    return lines


def link_destination(link: Link, source: str = "") -> str:
    """Return where the symlink for ``link`` is created.

    Without ``to`` the link is named after the resolved ``source``.
    """
    dest = link.to or os.path.basename((source or link.from_).rstrip("/"))
    if not os.path.isabs(dest):
        dest = os.path.join(command_path(), dest)
    return dest


def get_links(command: Command, pkg: "Package") -> list[Link]:
    """Resolve each link's ``from`` glob under the package home.

    Links whose glob matches nothing are logged and skipped. More than one
    match is an error.
    """
    home = pkg.home
    if not os.path.exists(home):
        raise LinkError(
            f"{home}: still not exists. links can be resolved only after install"
        )

    links = []
    for link in command.link:
        if link.from_ == ".":
            links.append(Link(from_=home, to=link_destination(link, home)))
            continue
        pattern = os.path.join(home, link.from_)
        _logging.debug(f"{pkg.name}: search files: {pattern}")
        matches = sorted(set(glob.glob(pattern, recursive=True)))
        if not matches:
            _logging.error(f"{pkg.name}: {link.from_!r} no matches")
            continue
        if len(matches) > 1:
            raise LinkError(f"{pkg.name}: {len(matches)} files matched: {matches}")
        links.append(Link(from_=matches[0], to=link_destination(link, matches[0])))
    return links


def parse_words(step: str, env: Mapping[str, str]) -> list[str]:
    """Split a build step into argv, expanding $VAR outside single quotes."""
    out = []
    quote = None
    i = 0
    while i < len(step):
        c = step[i]
        if c == "\\" and quote != "'" and i + 1 < len(step):
            out.append(step[i : i + 2])
            i += 2
            continue
        if c in ("'", '"'):
            if quote is None:
                quote = c
            elif quote == c:
                quote = None
        elif c == "$" and quote != "'":
            match = _VAR.match(step, i)
            if match:
                value = env.get(match.group(1) or match.group(2), "")
                if quote == '"':
                    value = value.replace("\\", "\\\\").replace('"', '\\"')
                out.append(value)
                i = match.end()
                continue
        out.append(c)
        i += 1
    try:
        return shlex.split("".join(out))
    except ValueError as e:
        raise BuildError(f"failed to parse build step {step!r}: {e}") from e


async def expand_backticks(step: str, env: Mapping[str, str], cwd: str) -> str:
    """Replace each `...` outside single quotes with its command output."""
    out = []
    quote = None
    i = 0
    while i < len(step):
        c = step[i]
        if c == "\\" and quote != "'" and i + 1 < len(step):
            out.append(step[i : i + 2])
            i += 2
            continue
        if c == "'" and quote != '"':
            quote = None if quote == "'" else "'"
        elif c == '"' and quote != "'":
            quote = None if quote == '"' else '"'
        elif c == "`" and quote != "'":
            end = step.find("`", i + 1)
            if end < 0:
                raise BuildError(f"unterminated backtick in {step!r}")
            inner = step[i + 1 : end]
            result = await run_command_async(["sh", "-c", inner], cwd=cwd, env=dict(env))
            if not result.ok:
                raise BuildError(f"failed to run `{inner}`", result.stderr)
            out.append(result.stdout.strip())
            i = end + 1
            continue
        out.append(c)
        i += 1
    return "".join(out)


def has_sudo(command: Command) -> bool:
    if not command.build_required():
        return False
    for step in command.build.steps:
        try:
            args = shlex.split(step)
        except ValueError:
            continue
        if args and args[0] == "sudo":
            return True
    return False


async def build(command: Command, pkg: "Package") -> None:
    """Run build steps in order inside the package home.

    A step starting with ``sudo`` runs as ``sudo -S`` with
    $AFX_SUDO_PASSWORD on its stdin.
    """
    directory = os.path.join(pkg.home, command.build.directory)
    env = {**os.environ, **command.build.env}
    _logging.debug(f"{pkg.name}: build in {directory}")

    for step in command.build.steps:
        line = await expand_backticks(step, env, directory)
        args = parse_words(line, env)
        if not args:
            continue
        stdin = None
        if args[0] == "sudo":
            args = ["sudo", "-S", *args[1:]]
            stdin = os.environ.get("AFX_SUDO_PASSWORD", "") + "\n"
        _logging.debug(f"{pkg.name}: run command: {args}")
        try:
            result = await run_command_async(
                args, cwd=directory, env=command.build.env, stdin=stdin
            )
        except OSError as e:
            raise BuildError(f"{pkg.name}: failed to build: {args[0]}: {e}") from e
        if not result.ok:
            raise BuildError(
                f"{pkg.name}: failed to build: {step!r} exited with {result.returncode}",
                result.stderr,
            )


def create_links(links: list[Link], pkg: "Package") -> None:
    errs = MultiError()
    for link in links:
        parent = os.path.dirname(link.to)
        if not os.path.isdir(parent):
            _logging.debug(f"{parent}: created directory to install path")
            os.makedirs(parent, mode=0o755, exist_ok=True)

        if os.path.isfile(link.from_) and not is_executable(link.from_):
            make_executable(link.from_)

        if os.path.lexists(link.to):
            _logging.debug(f"{link.to}: removed because already exists before linking")
            os.remove(link.to)

        _logging.debug(f"created symlink {link.from_} to {link.to}")
        try:
            os.symlink(link.from_, link.to)
        except OSError as e:
            errs.append(LinkError(f"{pkg.name}: failed to create symlink {link.to}: {e}"))
    if errs:
        raise errs


async def install(command: Command, pkg: "Package") -> None:
    if command.build_required():
        await build(command, pkg)
    create_links(get_links(command, pkg), pkg)


def installed(command: Command, pkg: "Package") -> bool:
    if not os.path.exists(pkg.home):
        _logging.debug(f"{pkg.name}: {pkg.home} does not exist yet")
        return False
    try:
        links = get_links(command, pkg)
    except LinkError as e:
        _logging.debug(f"{pkg.name}: cannot get link: {e}")
        return False

    if not command.link:
        return os.path.exists(pkg.home)
    if len(links) != len(command.link):
        return False

    for link in links:
        if not os.path.islink(link.to):
            return False
        target = os.readlink(link.to)
        if not os.path.exists(target):
            _logging.debug(f"{target} does no longer exist ({link.to})")
            return False
    return True


def unlink(command: Command, pkg: "Package") -> MultiError:
    """Remove the symlink of every link; sources are left in place."""
    errs = MultiError()
    try:
        links = get_links(command, pkg)
    except LinkError as e:
        errs.append(LinkError(f"{pkg.name}: failed to get command.link: {e}"))
        return errs
    for link in links:
        if not os.path.islink(link.to):
            continue
        _logging.debug(f"{pkg.name}: unlinked {link.to}")
        try:
            os.remove(link.to)
        except OSError as e:
            errs.append(LinkError(f"{pkg.name}: failed to remove {link.to}: {e}"))
    return errs


def paths(command: Command, pkg: "Package") -> list[str]:
    """Return the source and destination of every resolvable link."""
    if not os.path.exists(pkg.home):
        return []
    try:
        links = get_links(command, pkg)
    except LinkError:
        return []
    result = []
    for link in links:
        result.extend([link.from_, link.to])
    return result


def run_if(condition: str) -> bool:
    result = subprocess.run([shell(), "-c", condition], capture_output=True)
    return result.returncode == 0


def init(command: Command, pkg: "Package") -> list[str]:
    if command.if_ and not run_if(command.if_):
        _logging.error(f"{pkg.name}: command.if returns not zero so unlink package")
        unlink(command, pkg)
        raise AfxError(f"{pkg.name}: failed to run command.if")

    lines = env_lines(command.env)
    for key, value in command.alias.items():
        lines.append(f"alias {key}={shell_quote(value)}")
    if command.snippet:
        lines.append(command.snippet.rstrip("\n"))
    return lines


__all__ = [
    "build",
    "create_links",
    "env_lines",
    "expand_backticks",
    "get_links",
    "has_sudo",
    "init",
    "install",
    "installed",
    "link_destination",
    "parse_words",
    "paths",
    "run_if",
    "shell",
    "shell_quote",
    "unlink",
]
