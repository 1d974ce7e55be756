"""Minimal {{ }} templating for asset filenames and URLs.

Templates use the familiar ``{{ .Field }}`` action syntax with pipelines
and a fixed function set::

    {{ .Name }}_{{ replace .Release.Tag "v" "" }}_{{ .OS | toupper }}

Looking up a key that does not exist is an error, never an empty string.
"""

import datetime
import os
import platform
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import TemplateError

_GOOS = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "windows",
    "freebsd": "freebsd",
}

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
}


def runtime_os() -> str:
    """Return the OS name in release-asset vocabulary (linux, darwin, ...)."""
    system = platform.system().lower()
    return _GOOS.get(system, system)


def runtime_arch() -> str:
    """Return the CPU architecture in release-asset vocabulary (amd64, 386, ...)."""
    machine = platform.machine().lower()
    return _GOARCH.get(machine, machine)


@dataclass
class DataContext:
    """Values exposed to templates."""

    env: dict[str, str] = field(default_factory=lambda: dict(os.environ))
    os: str = field(default_factory=runtime_os)
    arch: str = field(default_factory=runtime_arch)
    name: str = ""
    home: str = ""
    release_name: str = ""
    release_tag: str = ""

    @classmethod
    def for_package(cls, name: str, home: str, release_name: str = "", release_tag: str = ""):
        return cls(name=name, home=home, release_name=release_name, release_tag=release_tag)


def _go_dir(path: str) -> str:
    d = os.path.dirname(path.rstrip("/")) if path not in ("/", "") else path
    return os.path.normpath(d) if d else "."


_TIME_TOKENS: list[tuple[str, Callable[[datetime.datetime], str]]] = [
    ("January", lambda t: t.strftime("%B")),
    ("Monday", lambda t: t.strftime("%A")),
    ("2006", lambda t: f"{t.year:04d}"),
    ("-0700", lambda t: t.strftime("%z") or "+0000"),
    ("Jan", lambda t: t.strftime("%b")),
    ("Mon", lambda t: t.strftime("%a")),
    ("MST", lambda t: t.strftime("%Z") or "UTC"),
    ("01", lambda t: f"{t.month:02d}"),
    ("02", lambda t: f"{t.day:02d}"),
    ("_2", lambda t: f"{t.day:2d}"),
    ("03", lambda t: f"{(t.hour % 12) or 12:02d}"),
    ("04", lambda t: f"{t.minute:02d}"),
    ("05", lambda t: f"{t.second:02d}"),
    ("06", lambda t: f"{t.year % 100:02d}"),
    ("15", lambda t: f"{t.hour:02d}"),
    ("PM", lambda t: "PM" if t.hour >= 12 else "AM"),
    ("1", lambda t: str(t.month)),
    ("2", lambda t: str(t.day)),
    ("3", lambda t: str((t.hour % 12) or 12)),
    ("4", lambda t: str(t.minute)),
    ("5", lambda t: str(t.second)),
]


def format_time(layout: str, now: datetime.datetime | None = None) -> str:
    """Format the current UTC time with a reference-time layout (2006-01-02)."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    out = []
    i = 0
    while i < len(layout):
        for token, render in _TIME_TOKENS:
            if layout.startswith(token, i):
                out.append(render(now))
                i += len(token)
                break
        else:
            out.append(layout[i])
            i += 1
    return "".join(out)


FUNCS: dict[str, Callable[..., Any]] = {
    "replace": lambda s, old, new: s.replace(old, new),
    "tolower": lambda s: s.lower(),
    "toupper": lambda s: s.upper(),
    "trim": lambda s: s.strip(),
    "trimprefix": lambda s, prefix: s[len(prefix):] if prefix and s.startswith(prefix) else s,
    "trimsuffix": lambda s, suffix: s[: -len(suffix)] if suffix and s.endswith(suffix) else s,
    "dir": _go_dir,
    "abs": os.path.abspath,
    "time": format_time,
}

_ACTION = re.compile(r"\{\{(-\s)?(.*?)(\s-)?\}\}", re.DOTALL)
_TOKEN = re.compile(
    r"""
    \s*(?:
        (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<raw>`[^`]*`)
      | (?P<field>(?:\.[A-Za-z_][A-Za-z0-9_]*)+|\.)
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<punct>[|()])
    )
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def _tokenize(expr: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    expr = expr.rstrip()
    while pos < len(expr):
        match = _TOKEN.match(expr, pos)
        if not match or match.end() == pos:
            raise TemplateError(f"unexpected {expr[pos:].strip()!r} in action {expr.strip()!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class Template:
    """Apply templates against a data context.

    ``replace`` rewrites the OS and Arch values through a replacements map
    before evaluation, e.g. ``{"darwin": "macOS", "amd64": "x86_64"}``.
    """

    def __init__(self, ctx: DataContext):
        self.ctx = ctx
        self.fields: dict[str, Any] = {
            "Env": dict(ctx.env),
            "Name": ctx.name,
            "Home": ctx.home,
            "Dir": ctx.home,
            "OS": ctx.os,
            "Arch": ctx.arch,
            "Release": {"Name": ctx.release_name, "Tag": ctx.release_tag},
        }

    def replace(self, replacements: dict[str, str] | None) -> "Template":
        replacements = replacements or {}
        self.fields["OS"] = replacements.get(self.ctx.os) or self.ctx.os
        self.fields["Arch"] = replacements.get(self.ctx.arch) or self.ctx.arch
        return self

    def apply(self, text: str) -> str:
        out = []
        pos = 0
        trim_next = False
        for match in _ACTION.finditer(text):
            literal = text[pos : match.start()]
            if trim_next:
                literal = literal.lstrip()
            if match.group(1):
                literal = literal.rstrip()
            out.append(literal)
            expr = match.group(2)
            if not expr.strip().startswith("/*"):
                value = self._eval_pipeline(_tokenize(expr), expr)
                out.append("" if value is None else str(value))
            trim_next = bool(match.group(3))
            pos = match.end()
        rest = text[pos:]
        if "{{" in rest:
            raise TemplateError(f"unclosed action in {text!r}")
        out.append(rest.lstrip() if trim_next else rest)
        return "".join(out)

    def _lookup(self, path: str) -> Any:
        if path == ".":
            return self.fields
        value: Any = self.fields
        for key in path.lstrip(".").split("."):
            if not isinstance(value, dict) or key not in value:
                raise TemplateError(f"map has no entry for key {key!r} (in {path})")
            value = value[key]
        return value

    def _eval_pipeline(self, tokens: list[tuple[str, str]], expr: str) -> Any:
        commands: list[list[Any]] = [[]]
        i = 0
        while i < len(tokens):
            kind, text = tokens[i]
            if kind == "punct" and text == "|":
                commands.append([])
            elif kind == "punct" and text == "(":
                depth = 1
                j = i + 1
                while j < len(tokens) and depth:
                    if tokens[j] == ("punct", "("):
                        depth += 1
                    elif tokens[j] == ("punct", ")"):
                        depth -= 1
                    j += 1
                if depth:
                    raise TemplateError(f"unclosed parenthesis in {expr.strip()!r}")
                commands[-1].append(("value", self._eval_pipeline(tokens[i + 1 : j - 1], expr)))
                i = j
                continue
            elif kind == "punct":
                raise TemplateError(f"unexpected {text!r} in {expr.strip()!r}")
            else:
                commands[-1].append((kind, text))
            i += 1

        result: Any = None
        for n, command in enumerate(commands):
            if not command:
                raise TemplateError(f"missing command in {expr.strip()!r}")
            piped = [result] if n > 0 else []
            result = self._eval_command(command, piped, expr)
        return result

    def _eval_arg(self, kind: str, text: Any) -> Any:
        if kind == "value":
            return text
        if kind == "string":
            return _unquote(text)
        if kind == "raw":
            return text[1:-1]
        if kind == "number":
            return float(text) if "." in text else int(text)
        if kind == "field":
            return self._lookup(text)
        if kind == "ident":
            if text in ("true", "false"):
                return text == "true"
            return self._call(text, [])
        raise TemplateError(f"unexpected {text!r}")

    def _eval_command(self, command: list[Any], piped: list[Any], expr: str) -> Any:
        kind, text = command[0]
        if kind == "ident" and text not in ("true", "false"):
            args = [self._eval_arg(k, t) for k, t in command[1:]]
            return self._call(text, args + piped)
        if len(command) > 1 or piped:
            raise TemplateError(f"can't give argument to non-function {text!r} in {expr.strip()!r}")
        return self._eval_arg(kind, text)

    def _call(self, name: str, args: list[Any]) -> Any:
        func = FUNCS.get(name)
        if func is None:
            raise TemplateError(f"function {name!r} not defined")
        try:
            return func(*args)
        except (TypeError, AttributeError, ValueError) as e:
            raise TemplateError(f"wrong arguments for {name}: {e}") from e


def render(text: str, ctx: DataContext, replacements: dict[str, str] | None = None) -> str:
    """Render ``text`` against ``ctx`` after applying OS/Arch replacements."""
    return Template(ctx).replace(replacements).apply(text)


__all__ = [
    "DataContext",
    "Template",
    "FUNCS",
    "format_time",
    "render",
    "runtime_os",
    "runtime_arch",
]
