"""
Base class for all domain events.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Something the core wants the outside world to know about.

    Events flow one way: the core publishes, subscribers (the presentation
    layer) react. Nothing in the core waits on a subscriber's answer.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
