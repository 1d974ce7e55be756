"""Local directory packages."""

import asyncio
from dataclasses import dataclass

from ..paths import expand_path
from .base import Package
from .models import Status


@dataclass(kw_only=True)
class Local(Package):
    """A directory already on disk; nothing is ever fetched or removed."""

    directory: str

    kind = "local"
    type = "Local"

    @property
    def home(self) -> str:
        return expand_path(self.directory)

    @property
    def id(self) -> str:
        return self.home

    async def fetch(self) -> None:
        return None

    async def install(self, status: asyncio.Queue) -> None:
        await status.put(Status(name=self.name, done=True))

    async def uninstall(self) -> None:
        return None

    def installed(self) -> bool:
        return True


__all__ = ["Local"]
