"""
Command execution - Run shell commands for scanners that gather external facts.
"""

import asyncio
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import structlog

from ..errors import CommandTimeoutError, ExternalCommandError


logger = structlog.get_logger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of a finished command"""
    stdout: str
    stderr: str
    exit_code: Optional[int]
    signal: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def _signal_name(returncode: int) -> Optional[str]:
    if returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"SIG{-returncode}"


async def execute_command(
    command: str,
    cwd: Optional[Union[str, Path]] = None,
    timeout: float = 60.0,
    ignore_exit_code: bool = False,
) -> CommandResult:
    """
    Run a shell command and capture its output.

    Args:
        command: Shell command line
        cwd: Working directory (default: current directory)
        timeout: Seconds before the process is killed
        ignore_exit_code: Return non-zero exits instead of raising

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        CommandTimeoutError: The command ran past `timeout` (always raised)
        ExternalCommandError: The command could not start, or it exited
            non-zero or was killed while `ignore_exit_code` is False
    """
    logger.debug("command_started", command=command, cwd=str(cwd) if cwd else None)

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExternalCommandError(command, None, None, message=f"Failed to start command: {e}") from e

    try:
        raw_stdout, raw_stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.warning("command_timeout", command=command, timeout=timeout)
        raise CommandTimeoutError(command, timeout)

    result = CommandResult(
        stdout=raw_stdout.decode("utf-8", errors="replace"),
        stderr=raw_stderr.decode("utf-8", errors="replace"),
        exit_code=process.returncode if process.returncode >= 0 else None,
        signal=_signal_name(process.returncode),
    )

    logger.debug(
        "command_finished",
        command=command,
        exit_code=result.exit_code,
        signal=result.signal,
    )

    if not result.ok and not ignore_exit_code:
        raise ExternalCommandError(
            command,
            result.exit_code,
            result.signal,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    return result
