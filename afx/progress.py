"""Live progress line for concurrent package operations."""

import asyncio
import logging
import shutil
from typing import IO, Iterable

import click

from .packages.models import Status

_logging = logging.getLogger(__name__)

CLEAR_LINE = "\x1b[2K"
MAX_WIDTH = 100


def summary_line(remaining: list[str], width: int) -> str:
    """Render ``N| a, b, c`` cut down to fit ``width`` columns."""
    width = min(width, MAX_WIDTH)
    line = f"{len(remaining)}| " + ", ".join(remaining)
    if width < 5:
        return ""
    if len(line) > width:
        return line[: width - 4] + "..."
    return line


class Progress:
    """Consume status events and keep a one-line summary of pending work.

    Every event prints a permanent line for its package, then redraws the
    faded list of packages still running on the same terminal line.
    """

    def __init__(self, names: Iterable[str], out: IO[str] | None = None):
        self.status: dict[str, Status] = {name: Status(name=name) for name in names}
        self.out = out

    def done_count(self) -> int:
        return sum(1 for s in self.status.values() if s.done)

    def remaining(self) -> list[str]:
        return [name for name, s in self.status.items() if not s.done]

    def finished(self) -> bool:
        return self.done_count() == len(self.status)

    def _echo(self, text: str, nl: bool = True) -> None:
        click.echo(text, nl=nl, file=self.out)

    def render(self, s: Status) -> None:
        self._echo(CLEAR_LINE, nl=False)
        if not s.hidden:
            mark = click.style("✖", fg="red") if s.err else click.style("✔", fg="green")
            line = f"{mark} {click.style(s.name, fg='white')}"
            if s.message:
                message = s.message if s.no_color else click.style(s.message, fg="yellow")
                line = f"{line} {message}"
            self._echo(line)

        if s.name in self.status:
            self.status[s.name] = s
        else:
            _logging.debug(f"progress: status for unknown package {s.name}")

        if self.finished():
            return
        width = shutil.get_terminal_size((80, 24)).columns
        summary = summary_line(self.remaining(), width)
        self._echo(click.style(summary, fg="cyan", dim=True) + "\r", nl=False)

    async def print(self, queue: asyncio.Queue) -> None:
        """Render events from ``queue`` until every package is done."""
        while not self.finished():
            s = await queue.get()
            self.render(s)


__all__ = ["Progress", "summary_line", "CLEAR_LINE"]
