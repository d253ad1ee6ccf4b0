"""Async OS command execution with timeout and guaranteed cleanup."""

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..core.exceptions import CommandLaunchError, CommandTimeoutError
from ..utils.redaction import redact_secrets

# Keep net.exe/powershell.exe from flashing a console window on Windows
_CREATION_FLAGS = getattr(subprocess, "CREATE_NO_WINDOW", 0)


@dataclass(frozen=True)
class CommandResult:
    args: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """
    Runs commands from a discrete argument list, never through a shell.

    Every run is bounded: on timeout or when the awaiting task is cancelled
    the child is killed and reaped before the error propagates.
    """

    def __init__(self, default_timeout: float = 60.0):
        self._default_timeout = default_timeout

    async def run(
        self,
        args: Sequence[str],
        timeout: Optional[float] = None,
        redact: Iterable[str] = (),
    ) -> CommandResult:
        timeout = self._default_timeout if timeout is None else timeout
        printable = redact_secrets(subprocess.list2cmdline(list(args)), redact)
        logging.debug(f"Running: {printable}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                creationflags=_CREATION_FLAGS,
            )
        except OSError as e:
            logging.error(f"Could not start '{args[0]}': {e}")
            raise CommandLaunchError(args, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logging.warning(f"Command timed out after {timeout:g}s: {printable}")
            raise CommandTimeoutError(args, timeout)
        finally:
            # Covers timeout and cancellation of the awaiting task
            if process.returncode is None:
                await self._terminate(process)

        result = CommandResult(
            args=tuple(args),
            returncode=process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
        )
        logging.debug(f"Exit code {result.returncode}: {printable}")
        return result

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logging.error(f"Process {process.pid} did not exit after kill")


def _decode(data: Optional[bytes]) -> str:
    return data.decode(errors="replace") if data else ""
