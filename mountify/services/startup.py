"""Startup tasks: mount auto-mount profiles and provision missing dependencies."""

import asyncio
import logging

from .network_mount.mount_controller import MountController
from .provisioning.provisioner import DependencyProvisioner
from ..core.server_registry import ServerRegistry


class StartupService:
    def __init__(
        self,
        registry: ServerRegistry,
        mount_controller: MountController,
        provisioner: DependencyProvisioner,
        auto_mount_delay_seconds: float = 2.0,
        auto_install_dependencies: bool = True,
    ):
        self._registry = registry
        self._mount_controller = mount_controller
        self._provisioner = provisioner
        self._auto_mount_delay = auto_mount_delay_seconds
        self._auto_install = auto_install_dependencies

    async def ensure_dependencies(self) -> None:
        """Check prerequisites and install the missing ones without asking."""
        status = await self._provisioner.check_all()
        logging.info(f"Dependency check: {status}")

        if all(status.values()):
            return
        if not self._auto_install:
            logging.warning("Dependencies missing and automatic installation is disabled")
            return

        logging.info("Starting automatic dependency installation...")
        await self._provisioner.install_missing()

    async def auto_mount(self) -> int:
        """Mount every profile flagged auto_mount after the startup delay."""
        await asyncio.sleep(self._auto_mount_delay)

        servers = [s for s in await self._registry.get_all() if s.auto_mount]
        if not servers:
            return 0

        logging.info(f"Auto-mounting {len(servers)} server(s)")
        # One at a time: profiles may share a drive letter
        mounted = 0
        for server in servers:
            result = await self._mount_controller.mount(server.id)
            if result.success:
                mounted += 1
        logging.info(f"Auto-mount finished: {mounted}/{len(servers)} mounted")
        return mounted
