"""Gist packages."""

import asyncio
import logging
import os
from dataclasses import dataclass

from ..errors import FetchError
from ..paths import afx_root
from .base import Package, remove_path
from .github import git

_logging = logging.getLogger(__name__)


@dataclass(kw_only=True)
class Gist(Package):
    owner: str
    gist_id: str

    kind = "gist"
    type = "Gist"

    @property
    def home(self) -> str:
        return os.path.join(afx_root(), "gist.github.com", self.owner, self.gist_id)

    @property
    def id(self) -> str:
        return f"gist.github.com/{self.owner}/{self.gist_id}"

    @property
    def url(self) -> str:
        return f"https://gist.github.com/{self.owner}/{self.gist_id}"

    async def fetch(self) -> None:
        home = self.home
        if os.path.exists(home):
            # a gist is always recloned from scratch
            _logging.debug(f"{self.name}: removed {home} before cloning")
            await asyncio.to_thread(remove_path, home)
        os.makedirs(os.path.dirname(home), exist_ok=True)
        result = await git("clone", "--no-tags", self.url, home)
        if not result.ok:
            raise FetchError(f"{self.name}: failed to clone gist repository", result.stderr)


__all__ = ["Gist"]
