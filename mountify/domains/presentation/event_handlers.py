import logging
from typing import Any, Dict

from mountify.core.events.dependency_events import DependencyStatusEvent
from mountify.core.events.mount_events import (
    MountResultEvent,
    ServersUpdatedEvent,
    TrayRefreshRequestedEvent,
    UnmountResultEvent,
)
from mountify.domains.presentation.websocket_manager import WebSocketManager


def _result_payload(event) -> Dict[str, Any]:
    data: Dict[str, Any] = {"server_id": event.server_id, "success": event.success}
    if event.error is not None:
        data["error"] = event.error
    return data


class PresentationEventHandlers:
    """Turns domain events into ``{"type": ..., "data": ...}`` WebSocket messages."""

    def __init__(self, websocket_manager: WebSocketManager, show_notifications: bool = True):
        self.websocket_manager = websocket_manager
        self.show_notifications = show_notifications

    def _send(self, message_type: str, data: Dict[str, Any]) -> None:
        self.websocket_manager.broadcast(message_type, data)

    def _notify(self, title: str, body: str) -> None:
        if self.show_notifications:
            self._send("notification", {"title": title, "body": body})

    async def handle_mount_result(self, event: MountResultEvent) -> None:
        self._send("mount-result", _result_payload(event))
        if event.success:
            self._notify("Mounted Successfully", f"{event.server_name} mounted as {event.drive_letter}:")
        else:
            self._notify("Mount Failed", f"Failed to mount {event.server_name}")

    async def handle_unmount_result(self, event: UnmountResultEvent) -> None:
        self._send("unmount-result", _result_payload(event))
        if event.success:
            self._notify("Unmounted Successfully", f"{event.server_name} unmounted")
        else:
            self._notify("Unmount Failed", f"Failed to unmount {event.server_name}")

    async def handle_servers_updated(self, event: ServersUpdatedEvent) -> None:
        self._send("servers-updated", {"servers": event.servers})

    async def handle_tray_refresh(self, event: TrayRefreshRequestedEvent) -> None:
        self._send("tray-refresh", {"reason": event.reason})

    async def handle_dependency_status(self, event: DependencyStatusEvent) -> None:
        logging.info(f"Dependency status: {event.status.value} - {event.message}")
        self._send("dependency-status", {"status": event.status.value, "message": event.message})
