"""Server profile management: save/delete with the events the UI relies on."""

import logging
from typing import List

from .network_mount.mount_controller import MountController
from ..core.events.event_bus import DomainEventBus
from ..core.events.mount_events import ServersUpdatedEvent, TrayRefreshRequestedEvent
from ..core.exceptions import ServerNotFoundError
from ..core.server_registry import ServerRegistry
from ..models import ServerProfile


class ServerProfileService:
    def __init__(
        self,
        registry: ServerRegistry,
        mount_controller: MountController,
        event_bus: DomainEventBus,
        default_port: int = 22,
    ):
        self._registry = registry
        self._mount_controller = mount_controller
        self._event_bus = event_bus
        self._default_port = default_port

    async def list(self) -> List[ServerProfile]:
        return await self._registry.get_all()

    async def save(self, profile: ServerProfile) -> ServerProfile:
        """
        Create or update a profile.

        Drive letters are not checked for uniqueness here; two profiles may
        share a letter and only one of them can be mounted at a time.
        """
        if "port" not in profile.model_fields_set:
            profile = profile.model_copy(update={"port": self._default_port})

        saved = await self._registry.save(profile)
        await self._publish_changed(reason="saved")
        return saved

    async def delete(self, server_id: str) -> None:
        """Unmount first when the profile is mounted, then remove it."""
        profile = await self._registry.get_by_id(server_id)
        if profile is None:
            raise ServerNotFoundError(server_id)

        if profile.is_mounted:
            logging.info(f"Unmounting '{profile.name}' before deleting it")
            result = await self._mount_controller.unmount(server_id)
            if not result.success:
                logging.warning(
                    f"Deleting '{profile.name}' although unmount failed: {result.error}"
                )

        await self._registry.remove(server_id)
        logging.info(f"Deleted server profile '{profile.name}' ({server_id})")
        await self._publish_changed(reason="deleted")

    async def _publish_changed(self, reason: str) -> None:
        servers = await self._registry.get_all()
        await self._event_bus.publish(
            ServersUpdatedEvent(servers=[profile.to_public_dict() for profile in servers])
        )
        await self._event_bus.publish(TrayRefreshRequestedEvent(reason=reason))
