"""Packages downloaded from an arbitrary URL."""

import asyncio
import logging
import os
import posixpath
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx

from ..archive import unarchive_sniffed
from ..errors import FetchError, TemplateError
from ..github import download
from ..paths import afx_root
from ..templating import DataContext, render
from .base import Package

_logging = logging.getLogger(__name__)


def _home_for(url: str) -> str:
    parts = urlsplit(url)
    directory = posixpath.dirname(parts.path).strip("/")
    return os.path.join(afx_root(), parts.netloc, *[p for p in directory.split("/") if p])


@dataclass(kw_only=True)
class HTTP(Package):
    url: str
    output: str = ""
    replacements: dict[str, str] = field(default_factory=dict)
    http: httpx.AsyncClient | None = field(default=None, repr=False, compare=False)

    kind = "http"
    type = "HTTP"

    @property
    def resolved_url(self) -> str:
        """The URL after templating; the raw URL if templating fails."""
        if "{{" not in self.url:
            return self.url
        ctx = DataContext.for_package(name=self.name, home=_home_for(self.url))
        try:
            templated = render(self.url, ctx, self.replacements)
        except TemplateError as e:
            _logging.error(f"{self.name}: failed to parse URL: {e}")
            return self.url
        _logging.debug(f"{self.name}: templating URL {self.url!r} to {templated!r}")
        return templated

    @property
    def home(self) -> str:
        return _home_for(self.resolved_url)

    @property
    def id(self) -> str:
        parts = urlsplit(self.resolved_url)
        return f"{parts.netloc}{parts.path}"

    @property
    def filename(self) -> str:
        return self.output or posixpath.basename(urlsplit(self.resolved_url).path)

    async def fetch(self) -> None:
        url = self.resolved_url
        dest = os.path.join(self.home, self.filename)
        _logging.debug(f"http: {self.name}: copying {url!r} to {dest!r}")
        try:
            await download(url, dest, http=self.http)
        except FetchError as e:
            raise FetchError(f"{self.name}: failed to make HTTP request: {e}") from e
        await asyncio.to_thread(unarchive_sniffed, dest)


__all__ = ["HTTP"]
