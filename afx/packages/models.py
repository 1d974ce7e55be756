"""Data models for package declarations and progress events."""

from dataclasses import dataclass, field


@dataclass
class Status:
    """One progress event for a package.

    ``done`` marks the package as finished for the progress renderer;
    ``hidden`` events count towards completion without printing a line.
    """

    name: str
    done: bool = False
    err: bool = False
    message: str = ""
    no_color: bool = False
    hidden: bool = False


@dataclass
class Link:
    from_: str
    to: str = ""


@dataclass
class Build:
    steps: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    directory: str = ""


@dataclass
class Command:
    link: list[Link] = field(default_factory=list)
    build: Build | None = None
    env: dict[str, str] = field(default_factory=dict)
    alias: dict[str, str] = field(default_factory=dict)
    snippet: str = ""
    if_: str = ""

    def build_required(self) -> bool:
        return self.build is not None and len(self.build.steps) > 0


@dataclass
class Plugin:
    sources: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    scripts: list[str] = field(default_factory=list)
    snippet: str = ""
    snippet_prepare: str = ""
    if_: str = ""


@dataclass
class AssetSpec:
    filename: str = ""
    replacements: dict[str, str] = field(default_factory=dict)


@dataclass
class ReleaseSpec:
    name: str
    tag: str = ""
    asset: AssetSpec = field(default_factory=AssetSpec)


@dataclass
class GitHubOption:
    depth: int = 0


__all__ = [
    "Status",
    "Link",
    "Build",
    "Command",
    "Plugin",
    "AssetSpec",
    "ReleaseSpec",
    "GitHubOption",
]
