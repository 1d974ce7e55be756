"""GitHub release lookup, asset selection and download."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .errors import AssetNotFound, FetchError, TemplateError
from .templating import DataContext, render, runtime_arch, runtime_os

_logging = logging.getLogger(__name__)

API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = httpx.Timeout(30.0)

# Tags that resolve to the latest published (non-prerelease) release.
LATEST_TAGS = {"", "latest", "stable"}

OS_PATTERNS = {
    "darwin": r".*(apple|darwin|Darwin|osx|mac|macos|macOS).*",
    "linux": r".*linux.*",
}

ARCH_PATTERNS = {
    "amd64": r".*(amd64|64).*",
    "386": r".*(386|86).*",
    "arm64": r".*(arm64|aarch64).*",
}


@dataclass
class Asset:
    name: str
    url: str


@dataclass
class Release:
    owner: str
    repo: str
    tag: str
    name: str = ""
    assets: list[Asset] = field(default_factory=list)


def github_token() -> str | None:
    return (os.environ.get("GITHUB_TOKEN") or "").strip() or None


def auth_headers(token: str | None = None) -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    token = token or github_token()
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def new_http_client(**kwargs) -> httpx.AsyncClient:
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    kwargs.setdefault("follow_redirects", True)
    return httpx.AsyncClient(**kwargs)


def release_url(owner: str, repo: str, tag: str | None) -> str:
    base = f"{API_URL}/repos/{owner}/{repo}/releases"
    if (tag or "") in LATEST_TAGS:
        return f"{base}/latest"
    return f"{base}/tags/{tag}"


class GitHubClient:
    """Thin async client over the GitHub REST endpoints afx needs."""

    def __init__(self, http: httpx.AsyncClient | None = None, token: str | None = None):
        self.http = http
        self.token = token

    async def _get_json(self, url: str) -> dict:
        _logging.debug(f"GET {url}")
        try:
            if self.http is not None:
                resp = await self.http.get(url, headers=auth_headers(self.token))
            else:
                async with new_http_client() as http:
                    resp = await http.get(url, headers=auth_headers(self.token))
        except httpx.HTTPError as e:
            raise FetchError(f"failed to request {url}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code != 200:
            message = data.get("message") if isinstance(data, dict) else None
            raise FetchError(
                f"GitHub API returned status {resp.status_code} for {url}"
                + (f": {message}" if message else "")
            )
        if not isinstance(data, dict):
            raise FetchError(f"unexpected response from {url}")
        return data

    async def get_release(self, owner: str, repo: str, tag: str | None = None) -> Release:
        if not owner or not repo:
            raise FetchError("owner and repo are required")
        url = release_url(owner, repo, tag)
        data = await self._get_json(url)
        if "assets" not in data:
            raise FetchError(f"{owner}/{repo}: cannot fetch the list from GitHub Releases")
        assets = [
            Asset(name=a.get("name", ""), url=a.get("browser_download_url", ""))
            for a in data.get("assets") or []
        ]
        _logging.debug(f"{owner}/{repo}: assets: {[a.name for a in assets]}")
        return Release(
            owner=owner,
            repo=repo,
            tag=data.get("tag_name") or (tag or ""),
            name=data.get("name") or "",
            assets=assets,
        )

    async def latest_tag(self, owner: str, repo: str) -> str:
        release = await self.get_release(owner, repo, "latest")
        return release.tag


def _filter(assets: list[Asset], pattern: str, keep: bool) -> list[Asset]:
    """Apply one heuristic filter; it is skipped when it cannot help."""
    if len(assets) < 2:
        _logging.debug("assets.filter: finished filtering because length of assets is less than two")
        return assets
    regex = re.compile(pattern)
    filtered = [a for a in assets if bool(regex.match(a.name)) == keep]
    if not filtered:
        _logging.debug(f"assets.filter: {pattern!r} would drop every asset, skipped")
        return assets
    if len(filtered) != len(assets):
        _logging.debug(f"assets.filter: filtered: {[a.name for a in filtered]}")
    return filtered


def select_asset(
    assets: list[Asset],
    filename: str | None = None,
    os_name: str | None = None,
    arch: str | None = None,
    strict: bool = False,
) -> Asset:
    """Pick the one asset to download for this platform.

    An explicit ``filename`` must match an asset name exactly. Otherwise the
    list is narrowed by dropping SBOMs and checksums, then keeping names that
    mention the OS and the architecture. When several assets survive, the
    first wins with a warning, or AssetNotFound is raised if ``strict``.
    """
    if not assets:
        raise AssetNotFound("no assets found in release")

    if filename:
        _logging.debug(f"asset: filename {filename!r} is specified in config")
        for asset in assets:
            if asset.name == filename:
                return asset
        raise AssetNotFound(f"{filename}: no matched in assets")

    os_name = os_name or runtime_os()
    arch = arch or runtime_arch()

    candidates = _filter(assets, r".*\.sbom", keep=False)
    candidates = _filter(candidates, r".*(sha256sum|checksum).*", keep=False)
    if os_name in OS_PATTERNS:
        candidates = _filter(candidates, OS_PATTERNS[os_name], keep=True)
    if arch in ARCH_PATTERNS:
        candidates = _filter(candidates, ARCH_PATTERNS[arch], keep=True)

    if len(candidates) > 1:
        found = [a.name for a in candidates]
        if strict:
            raise AssetNotFound(f"{len(candidates)} assets found: {found}")
        _logging.warning(f"{len(candidates)} assets found: {found}")
        _logging.warning(f"first one {candidates[0].name!r} will be used")
    return candidates[0]


def template_filename(
    filename: str | None,
    ctx: DataContext,
    replacements: dict[str, str] | None = None,
) -> str | None:
    """Render a configured asset filename; None means use the heuristics."""
    if not filename:
        return None
    _logging.debug(f"asset: templating filename from {filename!r}")
    try:
        rendered = render(filename, ctx, replacements)
    except TemplateError as e:
        _logging.error(f"asset: failed to template filename {filename!r}: {e}")
        return None
    _logging.debug(f"asset: templated filename: -> {rendered!r}")
    return rendered


async def download(
    url: str,
    dest: str | os.PathLike,
    http: httpx.AsyncClient | None = None,
    headers: dict[str, str] | None = None,
) -> Path:
    """Stream ``url`` into ``dest``, creating parent directories.

    A failed or cancelled download removes the partial file.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    _logging.debug(f"download: {url} -> {dest}")

    async def _stream(client: httpx.AsyncClient) -> None:
        async with client.stream("GET", url, headers=headers) as resp:
            if resp.status_code == 404:
                raise FetchError(f"{url}: 404 Not Found")
            if resp.status_code >= 400:
                raise FetchError(f"{url}: {resp.status_code} {resp.reason_phrase}")
            with open(dest, "wb") as f:
                async for chunk in resp.aiter_bytes():
                    f.write(chunk)

    try:
        if http is not None:
            await _stream(http)
        else:
            async with new_http_client() as client:
                await _stream(client)
    except httpx.HTTPError as e:
        dest.unlink(missing_ok=True)
        raise FetchError(f"failed to download {url}: {e}") from e
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    return dest


async def download_asset(
    asset: Asset,
    home: str | os.PathLike,
    http: httpx.AsyncClient | None = None,
) -> Path:
    return await download(asset.url, Path(home) / asset.name, http=http)


__all__ = [
    "Asset",
    "Release",
    "GitHubClient",
    "auth_headers",
    "download",
    "download_asset",
    "github_token",
    "new_http_client",
    "release_url",
    "select_asset",
    "template_filename",
]
