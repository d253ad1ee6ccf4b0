"""The two OS prerequisites and where each one lands once installed."""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from ...config import Settings
from ...core.exceptions import UnknownDependencyError

DEFAULT_PROGRAM_FILES = r"C:\Program Files"


@dataclass(frozen=True)
class Prerequisite:
    key: str  # short id used by the API: "winfsp", "sshfs"
    name: str  # product name as shown in Add/Remove Programs
    download_url: str
    installer_filename: str
    executable_parts: Tuple[str, ...]
    prefer_x86_program_files: bool = False

    def executable_path(self, environ: Optional[Mapping[str, str]] = None) -> str:
        """Expected location of the installed executable, used for presence detection."""
        env = os.environ if environ is None else environ
        base = None
        if self.prefer_x86_program_files:
            base = env.get("ProgramFiles(x86)")
        base = base or env.get("ProgramFiles") or DEFAULT_PROGRAM_FILES
        return os.path.join(base, *self.executable_parts)


def build_prerequisites(settings: Settings) -> Dict[str, Prerequisite]:
    # WinFsp installs to Program Files (x86) on 64-bit systems
    winfsp = Prerequisite(
        key="winfsp",
        name="WinFsp",
        download_url=settings.winfsp_download_url,
        installer_filename="winfsp.msi",
        executable_parts=("WinFsp", "bin", "launchctl-x64.exe"),
        prefer_x86_program_files=True,
    )
    sshfs = Prerequisite(
        key="sshfs",
        name="SSHFS-Win",
        download_url=settings.sshfs_win_download_url,
        installer_filename="sshfs-win.msi",
        executable_parts=("SSHFS-Win", "bin", "sshfs-win.exe"),
    )
    return {winfsp.key: winfsp, sshfs.key: sshfs}


def resolve_prerequisite(prerequisites: Mapping[str, Prerequisite], name: str) -> Prerequisite:
    """Look up by key ("sshfs") or product name ("SSHFS-Win"), case-insensitive."""
    wanted = name.strip().lower()
    for prerequisite in prerequisites.values():
        if wanted in (prerequisite.key, prerequisite.name.lower()):
            return prerequisite
    raise UnknownDependencyError(name)
