"""Dependency Provisioner - detect, install and uninstall WinFsp and SSHFS-Win."""

import asyncio
import logging
import os
import tempfile
from typing import Dict, List, Mapping, Optional

import aiofiles.os

from .catalog import Prerequisite, resolve_prerequisite
from .downloader import InstallerDownloader
from .installer_commands import build_install_plan, build_uninstall_command, tail
from ..process_runner import ProcessRunner
from ...core.events.dependency_events import DependencyStatusEvent
from ...core.events.event_bus import DomainEventBus
from ...core.exceptions import (
    CommandTimeoutError,
    DownloadFailureError,
    ExecFailureError,
    InstallFailureError,
    MountifyError,
    UnknownDependencyError,
)
from ...models import DependencyState, DependencyStatus, UninstallResult

# Long enough for a user to find and answer the UAC prompt
ELEVATED_SESSION_TIMEOUT = 30 * 60


class DependencyProvisioner:
    """
    Presence is a plain file-exists check on each prerequisite's executable,
    recomputed on every call. Installation batches every missing MSI into one
    elevated session. Progress is published as DependencyStatusEvent; nothing
    here is polled.
    """

    def __init__(
        self,
        prerequisites: Mapping[str, Prerequisite],
        downloader: InstallerDownloader,
        runner: ProcessRunner,
        event_bus: DomainEventBus,
        download_directory: str = "",
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._prerequisites = dict(prerequisites)
        self._downloader = downloader
        self._runner = runner
        self._event_bus = event_bus
        self._download_directory = download_directory or tempfile.gettempdir()
        self._environ = environ
        self._install_lock = asyncio.Lock()

    async def check_all(self) -> Dict[str, bool]:
        """``{"winfsp": bool, "sshfs": bool}``"""
        states = await self.check_states()
        return {key: state.installed for key, state in states.items()}

    async def check_states(self) -> Dict[str, DependencyState]:
        states = {}
        for key, prerequisite in self._prerequisites.items():
            path = prerequisite.executable_path(self._environ)
            installed = await aiofiles.os.path.exists(path)
            logging.debug(f"{prerequisite.name} check: {path} exists: {installed}")
            states[key] = DependencyState(name=prerequisite.name, installed=installed)
        return states

    async def missing(self) -> List[Prerequisite]:
        states = await self.check_states()
        return [self._prerequisites[key] for key, state in states.items() if not state.installed]

    def is_installing(self) -> bool:
        return self._install_lock.locked()

    async def install_missing(self) -> bool:
        """
        Download and install every prerequisite that is not present.

        Returns True when everything ended installed (including the nothing
        to do case). A call made while another install is running is
        rejected and returns False without publishing anything.
        """
        if self._install_lock.locked():
            logging.warning("Dependency installation already running, ignoring request")
            return False

        async with self._install_lock:
            try:
                await self._install_missing()
            except (DownloadFailureError, InstallFailureError) as e:
                logging.error(f"Dependency installation failed: {e}")
                await self._publish(DependencyStatus.ERROR, str(e))
                return False
            except Exception as e:
                logging.exception("Unexpected error during dependency installation")
                await self._publish(DependencyStatus.ERROR, f"Installation failed: {e}")
                return False

            await self._publish(DependencyStatus.COMPLETE, "Installation complete!")
            return True

    async def _install_missing(self) -> None:
        missing = await self.missing()
        if not missing:
            logging.info("All dependencies already installed")
            return

        logging.info(f"Missing dependencies: {', '.join(p.name for p in missing)}")
        downloaded: List[str] = []
        for prerequisite in missing:
            await self._publish(
                DependencyStatus.DOWNLOADING, f"Downloading {prerequisite.name}..."
            )
            destination = os.path.join(self._download_directory, prerequisite.installer_filename)
            downloaded.append(await self._downloader.download(prerequisite.download_url, destination))

        await self._publish(
            DependencyStatus.INSTALLING, "Installing dependencies (approve UAC prompt)..."
        )
        await self._run_elevated_install(downloaded)

    async def _run_elevated_install(self, msi_paths: List[str]) -> None:
        plan = build_install_plan(msi_paths)
        logging.info(f"Installing {len(plan.directives)} package(s) in one elevated session")

        try:
            result = await self._runner.run(plan.args, timeout=ELEVATED_SESSION_TIMEOUT)
        except (ExecFailureError, CommandTimeoutError) as e:
            raise InstallFailureError(None, str(e)) from e

        if not result.ok:
            raise InstallFailureError(result.returncode, tail(result.stderr))
        logging.info("All dependencies installed successfully")

    async def uninstall(self, name: str) -> UninstallResult:
        """
        Remove one prerequisite through its MSI product code.

        The underlying uninstaller's exit code is not trusted (it is often
        non-zero on success), so any run that starts reports success. Only
        a failure to start the uninstall session is reported as an error.
        """
        try:
            prerequisite = resolve_prerequisite(self._prerequisites, name)
        except UnknownDependencyError as e:
            logging.warning(str(e))
            return UninstallResult(success=False, error=str(e))

        await self._publish(DependencyStatus.UNINSTALLING, f"Uninstalling {prerequisite.name}...")

        try:
            result = await self._runner.run(
                build_uninstall_command(prerequisite.name), timeout=ELEVATED_SESSION_TIMEOUT
            )
        except MountifyError as e:
            logging.error(f"Uninstall of {prerequisite.name} could not run: {e}")
            await self._publish(DependencyStatus.ERROR, f"Failed to uninstall {prerequisite.name}")
            return UninstallResult(success=False, error=str(e))

        logging.info(f"Uninstall of {prerequisite.name} completed with code {result.returncode}")
        await self._publish(
            DependencyStatus.UNINSTALL_COMPLETE, f"{prerequisite.name} uninstalled successfully"
        )
        return UninstallResult(success=True)

    async def _publish(self, status: DependencyStatus, message: str) -> None:
        await self._event_bus.publish(DependencyStatusEvent(status=status, message=message))
