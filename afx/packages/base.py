"""Operations shared by every package kind."""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import ClassVar

from ..errors import AfxError, FetchError, MultiError
from ..state import Resource
from . import command as command_block
from . import plugin as plugin_block
from .models import Command, Plugin, Status

_logging = logging.getLogger(__name__)


def remove_path(path: str) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


@dataclass(kw_only=True)
class Package:
    """A declared package.

    Each kind provides ``home``, ``id`` and ``fetch``; installing runs the
    fetch and then the command block. The plugin block needs no install
    step since its files are sourced in place.
    """

    name: str
    description: str = ""
    plugin: Plugin | None = None
    command: Command | None = None
    depends_on: list[str] = field(default_factory=list)

    kind: ClassVar[str] = ""
    type: ClassVar[str] = ""

    @property
    def home(self) -> str:
        raise NotImplementedError

    @property
    def id(self) -> str:
        raise NotImplementedError

    @property
    def version(self) -> str:
        return ""

    async def fetch(self) -> None:
        raise NotImplementedError

    async def install(self, status: asyncio.Queue) -> None:
        try:
            await self.fetch()
            if self.command is not None:
                await command_block.install(self.command, self)
        except asyncio.CancelledError:
            raise
        except Exception:
            await status.put(Status(name=self.name, done=True, err=True))
            raise
        await status.put(Status(name=self.name, done=True))

    async def check(self, status: asyncio.Queue) -> None:
        await status.put(
            Status(name=self.name, done=True, message=f"({self.kind})", no_color=True)
        )

    async def uninstall(self) -> None:
        errs = MultiError()
        if self.command is not None and os.path.exists(self.home):
            errs.append(command_block.unlink(self.command, self))
        try:
            await asyncio.to_thread(remove_path, self.home)
            _logging.debug(f"{self.name}: removed {self.home}")
        except OSError as e:
            errs.append(FetchError(f"{self.name}: failed to remove {self.home}: {e}"))
        if errs:
            raise errs

    def installed(self) -> bool:
        results = []
        if self.plugin is not None:
            results.append(plugin_block.installed(self.plugin, self))
        if self.command is not None:
            results.append(command_block.installed(self.command, self))
        if not results:
            results.append(os.path.exists(self.home))
        return all(results)

    def init(self) -> str:
        """Return the shell code that loads this package."""
        if not self.installed():
            raise AfxError(f"{self.name}: not installed")
        lines = []
        errs = MultiError()
        for block, module in ((self.plugin, plugin_block), (self.command, command_block)):
            if block is None:
                continue
            try:
                lines.extend(module.init(block, self))
            except AfxError as e:
                errs.append(e)
        if errs:
            raise errs
        return "\n".join(lines) + ("\n" if lines else "")

    def paths(self) -> list[str]:
        result = [self.home]
        if self.command is not None:
            result.extend(command_block.paths(self.command, self))
        return result

    def resource(self) -> Resource:
        return Resource(
            id=self.id,
            name=self.name,
            home=self.home,
            type=self.type,
            version=self.version,
            paths=self.paths(),
        )


@dataclass(kw_only=True)
class Orphan:
    """An installed resource that is no longer declared in the config."""

    record: Resource

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def home(self) -> str:
        return self.record.home

    def resource(self) -> Resource:
        return self.record

    async def uninstall(self) -> None:
        if self.record.type == "Local":
            # local directories belong to the user
            _logging.debug(f"{self.name}: skip removing local package files")
            return
        errs = MultiError()
        for path in [*self.record.paths, self.record.home]:
            try:
                await asyncio.to_thread(remove_path, path)
            except OSError as e:
                errs.append(FetchError(f"{self.name}: failed to remove {path}: {e}"))
        if errs:
            raise errs


__all__ = ["Package", "Orphan", "remove_path"]
