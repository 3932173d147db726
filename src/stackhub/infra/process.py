"""Subprocess execution with hard timeouts."""

import asyncio
import logging
import os
import signal
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Completed command."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandError(Exception):
    """Command could not be launched or exited non-zero."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: int | None,
        stderr: str = "",
        message: str | None = None,
    ) -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = f"{' '.join(args)} exited with code {returncode}"
            if stderr.strip():
                message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class CommandTimeoutError(CommandError):
    """Command exceeded its timeout and was killed."""

    def __init__(self, args: Sequence[str], timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            args, None, message=f"{' '.join(args)} timed out after {timeout:.0f}s"
        )


async def kill_process(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the process group of a process started with start_new_session."""
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


async def run_command(
    args: Sequence[str],
    *,
    timeout: float,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    Args:
        args: Program and arguments (no shell)
        timeout: Hard deadline in seconds; the process group is killed after it
        cwd: Working directory
        env: Full environment (defaults to the current one)

    Raises:
        CommandError: Launch failure or non-zero exit
        CommandTimeoutError: Deadline exceeded
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise CommandError(args, None, message=f"Failed to launch {args[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        await kill_process(process)
        raise CommandTimeoutError(args, timeout) from None
    except asyncio.CancelledError:
        await kill_process(process)
        raise

    result = CommandResult(
        args=list(args),
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if result.returncode != 0:
        raise CommandError(args, result.returncode, result.stderr)
    return result
