from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mountify.core.events.domain_event import DomainEvent


@dataclass(frozen=True)
class MountResultEvent(DomainEvent):
    """Terminal outcome of one mount attempt."""

    server_id: str
    server_name: str
    drive_letter: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class UnmountResultEvent(DomainEvent):
    """Terminal outcome of one unmount attempt."""

    server_id: str
    server_name: str
    drive_letter: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ServersUpdatedEvent(DomainEvent):
    """Full profile list (password-free) after any registry change."""

    servers: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class TrayRefreshRequestedEvent(DomainEvent):
    """Signals that mount-dependent UI (the tray menu) should re-render."""

    reason: str = ""
