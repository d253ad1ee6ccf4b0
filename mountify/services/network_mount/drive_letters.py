"""Drive letter allocation - reports which letters the OS has not assigned."""

import logging
import re
import string
from typing import Iterable, List, Optional, Set

from ..process_runner import ProcessRunner
from ...core.exceptions import MountifyError

ALL_LETTERS: List[str] = list(string.ascii_uppercase)
_DRIVE_LINE = re.compile(r"^([A-Z]):$")

# Prints one "C:" style id per line. wmic is absent on current Windows 11 builds
LOGICAL_DISK_QUERY = [
    "powershell.exe",
    "-NoProfile",
    "-NonInteractive",
    "-Command",
    "Get-CimInstance -ClassName Win32_LogicalDisk | Select-Object -ExpandProperty DeviceID",
]


class DriveLetterAllocator:
    """
    Computes free drive letters from the Win32_LogicalDisk device ids.

    Fails open: if the OS cannot be queried the full alphabet is returned so
    the UI can still offer a choice. This trades accuracy for availability;
    a mount on an occupied letter is still caught by mount verification.
    """

    def __init__(self, runner: ProcessRunner, query_timeout: float = 15.0):
        self._runner = runner
        self._timeout = query_timeout

    async def available_letters(self) -> List[str]:
        used = await self.used_letters()
        if used is None:
            return list(ALL_LETTERS)

        available = [letter for letter in ALL_LETTERS if letter not in used]
        logging.debug(f"Used drives: {sorted(used)}, available: {available}")
        return available

    async def used_letters(self) -> Optional[Set[str]]:
        """Letters currently assigned by the OS, or None if the query failed."""
        try:
            result = await self._runner.run(LOGICAL_DISK_QUERY, timeout=self._timeout)
        except MountifyError as e:
            logging.error(f"Error getting drives: {e}")
            return None

        if not result.ok:
            logging.error(f"Error getting drives: exit code {result.returncode} {result.stderr.strip()}")
            return None

        return parse_logicaldisk_output(result.stdout)


def parse_logicaldisk_output(output: str) -> Set[str]:
    used = set()
    for line in output.splitlines():
        match = _DRIVE_LINE.match(line.strip())
        if match:
            used.add(match.group(1))
    return used


def merge_current_letter(available: Iterable[str], current: Optional[str]) -> List[str]:
    """
    Re-include the letter of the profile being edited.

    When the profile is mounted its own letter shows up as used; the edit
    form must still offer it so the current selection is not lost.
    """
    letters = set(available)
    if current:
        current = current.strip().rstrip(":").upper()
        if len(current) == 1 and current in ALL_LETTERS:
            letters.add(current)
    return sorted(letters)
