from dataclasses import dataclass

from mountify.core.events.domain_event import DomainEvent
from mountify.models import DependencyStatus


@dataclass(frozen=True)
class DependencyStatusEvent(DomainEvent):
    status: DependencyStatus
    message: str
