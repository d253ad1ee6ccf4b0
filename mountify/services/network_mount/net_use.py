"""Windows ``net use`` wrapper for SSHFS-Win drive mappings."""

import logging
from typing import Optional

from ..process_runner import CommandResult, ProcessRunner
from ...core.exceptions import MountifyError
from ...models import ServerProfile


class NetUseClient:
    """Issues the three mapping primitives: map, delete, query. Nothing else."""

    def __init__(self, runner: ProcessRunner, command_timeout: Optional[float] = None):
        self._runner = runner
        self._timeout = command_timeout

    async def map_drive(self, profile: ServerProfile) -> CommandResult:
        """net use S: \\\\sshfs\\user@host!port/path <password>"""
        password = profile.password.get_secret_value()
        cmd = ["net", "use", profile.drive, profile.unc_path]
        if password:
            cmd.append(password)

        logging.info(f"Mapping {profile.drive} to {profile.unc_path}")
        return await self._runner.run(cmd, timeout=self._timeout, redact=[password])

    async def delete_mapping(self, target: str) -> bool:
        """
        Best-effort ``net use <target> /delete /y``.

        ``target`` is either a drive ("S:") or a UNC path. Failures are logged
        and reported as False, never raised.
        """
        cmd = ["net", "use", target, "/delete", "/y"]
        try:
            result = await self._runner.run(cmd, timeout=self._timeout)
        except MountifyError as e:
            logging.debug(f"Removing mapping {target} failed: {e}")
            return False

        if not result.ok:
            logging.debug(
                f"Removing mapping {target} exited {result.returncode}: {result.stderr.strip()}"
            )
        return result.ok

    async def mapping_exists(self, drive: str) -> bool:
        """
        ``net use S:`` exits 0 only while a mapping for that drive exists.

        A query that cannot run at all (launch failure, timeout) raises, since
        "unknown" must not be read as either outcome.
        """
        result = await self._runner.run(["net", "use", drive], timeout=self._timeout)
        return result.ok
