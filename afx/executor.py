"""Concurrent execution of package operations with progress and rollback."""

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import IO, Any, Iterable

from .env import Env
from .errors import Cancelled, MultiError
from .packages.base import remove_path
from .packages.models import Status
from .progress import Progress
from .state import State

_logging = logging.getLogger(__name__)

LIMIT = 16
OPERATIONS = ("install", "update", "check", "uninstall")


@dataclass
class Result:
    package: Any
    error: BaseException | None = None


class StatusSink:
    """Per-package view of the shared status queue.

    Forwards events until the package reports done, then drops the rest so
    the renderer sees exactly one terminal event per package.
    """

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self.done = False

    async def put(self, status: Status) -> None:
        if self.done:
            return
        if status.done:
            self.done = True
        await self.queue.put(status)


class Executor:
    """Run one operation over many packages, at most ``limit`` at a time.

    SIGINT (or ``cancel``) stops every running operation; packages still
    waiting for a slot finish immediately as cancelled. A failed install is
    rolled back with the package's uninstall.
    """

    def __init__(
        self,
        state: State | None = None,
        env: Env | None = None,
        limit: int = LIMIT,
        out: IO[str] | None = None,
    ):
        self.state = state
        self.env = env
        self.limit = limit
        self.out = out
        self.cancelled = False
        self._running: set[asyncio.Task] = set()

    def cancel(self) -> None:
        if self.cancelled:
            return
        _logging.debug(f"executor: cancelling {len(self._running)} running operations")
        self.cancelled = True
        for task in list(self._running):
            task.cancel()

    def _install_signal_handler(self, loop: asyncio.AbstractEventLoop) -> bool:
        try:
            loop.add_signal_handler(signal.SIGINT, self.cancel)
        except (NotImplementedError, RuntimeError, ValueError):
            return False
        return True

    async def _rollback(self, pkg) -> None:
        _logging.debug(f"{pkg.name}: rollback")
        try:
            await pkg.uninstall()
        except Exception as e:
            _logging.error(f"{pkg.name}: failed to rollback: {e}")

    async def _run_op(self, pkg, op: str, sink: StatusSink) -> None:
        if op == "install":
            await pkg.install(sink)
            if self.state is not None:
                self.state.add(pkg)
        elif op == "update":
            if pkg.kind != "local":
                await asyncio.to_thread(remove_path, pkg.home)
            await pkg.install(sink)
            if self.state is not None:
                self.state.update(pkg)
        elif op == "check":
            await pkg.check(sink)
        elif op == "uninstall":
            await pkg.uninstall()
            if self.state is not None:
                self.state.remove(pkg.id)
            await sink.put(Status(name=pkg.name, done=True))

    async def _worker(
        self,
        pkg,
        op: str,
        semaphore: asyncio.Semaphore,
        status: asyncio.Queue,
        results: asyncio.Queue,
    ) -> None:
        sink = StatusSink(status)
        error: BaseException | None = None

        async with semaphore:
            if self.cancelled:
                error = Cancelled(f"{pkg.name}: cancelled")
            else:
                task = asyncio.create_task(self._run_op(pkg, op, sink))
                self._running.add(task)
                try:
                    await task
                except asyncio.CancelledError:
                    error = Cancelled(f"{pkg.name}: cancelled")
                except Exception as e:
                    error = e
                finally:
                    self._running.discard(task)

                if error is not None and op == "install":
                    await self._rollback(pkg)

        if not sink.done:
            message = "(cancelled)" if isinstance(error, Cancelled) else ""
            await sink.put(Status(name=pkg.name, done=True, err=error is not None, message=message))
        results.put_nowait(Result(package=pkg, error=error))

    async def _supervise(self, workers: list[asyncio.Task], results: asyncio.Queue) -> None:
        await asyncio.gather(*workers, return_exceptions=True)
        results.put_nowait(None)

    async def run(self, packages: Iterable, op: str) -> MultiError | None:
        """Run ``op`` over ``packages`` and return the accumulated errors."""
        if op not in OPERATIONS:
            raise ValueError(f"unknown operation: {op}")
        packages = list(packages)
        if not packages:
            return None

        self.cancelled = False
        semaphore = asyncio.Semaphore(self.limit)
        status: asyncio.Queue = asyncio.Queue(maxsize=1)
        results: asyncio.Queue = asyncio.Queue()

        progress = Progress([pkg.name for pkg in packages], out=self.out)
        renderer = asyncio.create_task(progress.print(status))

        _logging.debug(f"({op}): start to run each package")
        workers = [
            asyncio.create_task(self._worker(pkg, op, semaphore, status, results))
            for pkg in packages
        ]
        supervisor = asyncio.create_task(self._supervise(workers, results))

        loop = asyncio.get_running_loop()
        handled = self._install_signal_handler(loop)
        errs = MultiError()
        try:
            while True:
                result = await results.get()
                if result is None:
                    break
                if result.error is not None and not isinstance(result.error, Cancelled):
                    errs.append(result.error)
            await supervisor
            await renderer
        finally:
            if handled:
                loop.remove_signal_handler(signal.SIGINT)
            for task in (*workers, supervisor, renderer):
                if not task.done():
                    task.cancel()

        if self.cancelled:
            errs.prepend(Cancelled("cancelled by interrupt"))

        err = errs.error_or_none()
        if err is not None:
            _logging.debug(f"({op}): finished with errors: {err}")
            if self.env is not None:
                self.env.refresh()
        return err


__all__ = ["Executor", "Result", "StatusSink", "LIMIT", "OPERATIONS"]
