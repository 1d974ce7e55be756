"""GitHub repository and GitHub release packages."""

import asyncio
import logging
import os
from dataclasses import dataclass, field

import httpx

from .. import github as releases
from ..archive import unarchive
from ..errors import AssetNotFound, FetchError
from ..execution import run_command_async
from ..paths import afx_root
from ..templating import DataContext
from ..versions import describe_update
from .base import Package
from .models import GitHubOption, ReleaseSpec, Status

_logging = logging.getLogger(__name__)

# git must never block on a credential prompt while running unattended
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


async def git(*args: str, cwd: str | None = None):
    try:
        return await run_command_async(["git", *args], cwd=cwd, env=GIT_ENV)
    except OSError as e:
        raise FetchError(f"failed to run git: {e}") from e


@dataclass(kw_only=True)
class GitHub(Package):
    owner: str
    repo: str
    branch: str = ""
    option: GitHubOption | None = None

    kind = "github"
    type = "GitHub"

    @property
    def home(self) -> str:
        return os.path.join(afx_root(), "github.com", self.owner, self.repo)

    @property
    def id(self) -> str:
        return f"github.com/{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    @property
    def depth(self) -> int:
        return self.option.depth if self.option else 0

    async def clone(self) -> None:
        """Clone into home, or reuse an existing checkout, then pin the branch."""
        home = self.home
        depth = ["--depth", str(self.depth)] if self.depth > 0 else []

        if not os.path.exists(home):
            os.makedirs(os.path.dirname(home), exist_ok=True)
            result = await git("clone", "--no-tags", *depth, self.url, home)
            if not result.ok:
                raise FetchError(f"{self.name}: failed to clone repository", result.stderr)
        elif not os.path.isdir(os.path.join(home, ".git")):
            raise FetchError(f"{self.name}: failed to open repository: {home} is not a git repository")

        if self.branch:
            ref = f"refs/heads/{self.branch}"
            result = await git(
                "fetch", "--force", "--update-head-ok", "--no-tags", *depth,
                "origin", f"+{ref}:{ref}",
                cwd=home,
            )
            if not result.ok:
                raise FetchError(f"{self.branch}: failed to fetch repository", result.stderr)
            result = await git("checkout", "--force", self.branch, cwd=home)
            if not result.ok:
                raise FetchError(f"{self.branch}: failed to checkout", result.stderr)

    async def fetch(self) -> None:
        await self.clone()


@dataclass(kw_only=True)
class GitHubRelease(GitHub):
    """A package installed from a GitHub release asset instead of a clone."""

    release: ReleaseSpec
    strict: bool = False
    http: httpx.AsyncClient | None = field(default=None, repr=False, compare=False)

    kind = "github-release"
    type = "GitHub Release"

    @property
    def id(self) -> str:
        return f"github.com/release/{self.owner}/{self.repo}"

    @property
    def version(self) -> str:
        return self.release.tag

    async def fetch(self) -> None:
        client = releases.GitHubClient(http=self.http)
        try:
            release = await client.get_release(self.owner, self.repo, self.release.tag)
        except FetchError as e:
            raise FetchError(f"{self.name}: failed to get from release: {e}") from e

        ctx = DataContext.for_package(
            name=self.name,
            home=self.home,
            release_name=self.release.name,
            release_tag=release.tag,
        )
        filename = releases.template_filename(
            self.release.asset.filename, ctx, self.release.asset.replacements
        )
        try:
            asset = releases.select_asset(release.assets, filename, strict=self.strict)
        except AssetNotFound as e:
            raise AssetNotFound(f"{self.name}: {e}") from e
        _logging.debug(f"{self.name}: asset: {asset.name}")

        path = await releases.download_asset(asset, self.home, http=self.http)
        await asyncio.to_thread(unarchive, path, self.home, self.release.name)

    async def check(self, status: asyncio.Queue) -> None:
        client = releases.GitHubClient(http=self.http)
        try:
            latest = await client.latest_tag(self.owner, self.repo)
        except asyncio.CancelledError:
            raise
        except Exception:
            await status.put(Status(name=self.name, done=True, err=True, message="(github-release)"))
            raise
        message, no_color = describe_update(self.release.tag, latest)
        await status.put(
            Status(name=self.name, done=True, message=f"(github-release) {message}", no_color=no_color)
        )


__all__ = ["GitHub", "GitHubRelease", "git"]
