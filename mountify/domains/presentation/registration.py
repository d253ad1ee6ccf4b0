# mountify/domains/presentation/registration.py

import logging

from mountify.core.events.dependency_events import DependencyStatusEvent
from mountify.core.events.event_bus import DomainEventBus
from mountify.core.events.mount_events import (
    MountResultEvent,
    ServersUpdatedEvent,
    TrayRefreshRequestedEvent,
    UnmountResultEvent,
)
from mountify.domains.presentation.event_handlers import PresentationEventHandlers


async def register_presentation_domain(
    event_bus: DomainEventBus, handlers: PresentationEventHandlers
) -> None:
    """Subscribe the WebSocket presentation handlers to every core event."""
    logging.info("Subscribing presentation event handlers...")

    await event_bus.subscribe(MountResultEvent, handlers.handle_mount_result)
    await event_bus.subscribe(UnmountResultEvent, handlers.handle_unmount_result)
    await event_bus.subscribe(ServersUpdatedEvent, handlers.handle_servers_updated)
    await event_bus.subscribe(TrayRefreshRequestedEvent, handlers.handle_tray_refresh)
    await event_bus.subscribe(DependencyStatusEvent, handlers.handle_dependency_status)

    logging.info("Presentation domain registration complete.")
