"""Async child process execution utilities."""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Sequence

_logging = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command_async(
    args: Sequence[str],
    cwd: str | os.PathLike | None = None,
    env: Mapping[str, str] | None = None,
    stdin: str | None = None,
) -> CommandResult:
    """Run a command without a shell and capture its output.

    ``env`` is merged onto the current environment. When the awaiting task
    is cancelled the child is killed and reaped before CancelledError
    propagates, so no process outlives an interrupted run.
    """
    merged_env = None
    if env:
        merged_env = {**os.environ, **env}

    _logging.debug(f"Running command: {list(args)} (cwd={cwd})")
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=merged_env,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate(
            stdin.encode() if stdin is not None else None
        )
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            _ = await process.wait()
        _logging.debug(f"Command cancelled: {list(args)}")
        raise
    finally:
        transport = getattr(process, "_transport", None)
        if transport:
            transport.close()

    result = CommandResult(
        args=list(args),
        returncode=process.returncode if process.returncode is not None else 1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if result.stderr and not result.ok:
        _logging.debug(f"stderr: {result.stderr.strip()}")
    return result
