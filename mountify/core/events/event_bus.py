"""
Central domain event bus (Mediator Pattern).

This is the only channel from the core to the presentation boundary: the
controller and the provisioner publish, the WebSocket layer subscribes.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type

from mountify.core.events.domain_event import DomainEvent

# An event handler is an async function that takes a DomainEvent and returns None
EventHandler = Callable[[DomainEvent], Awaitable[None]]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))


class DomainEventBus:
    """
    Asynchronous publish/subscribe bus.

    A failing handler is logged and never prevents the remaining handlers
    from running, and never propagates back into the publisher.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        """
        Subscribes a handler to a specific event type.

        Args:
            event_type: The class of the domain event to subscribe to.
            handler: The asynchronous function to call when the event is published.
        """
        async with self._lock:
            if handler in self._handlers[event_type]:
                return
            self._handlers[event_type].append(handler)
            logging.debug(f"Handler {_handler_name(handler)} subscribed to {event_type.__name__}")

    async def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        async with self._lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        """
        Publishes a domain event to every handler subscribed to its exact type.

        Handlers run concurrently; the call returns when all of them finished.
        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logging.debug(f"No handlers for event {event_type.__name__}")
            return

        logging.debug(f"Publishing {event_type.__name__} to {len(handlers)} handler(s)")
        await asyncio.gather(*(self._safe_execute(handler, event) for handler in handlers))

    async def _safe_execute(self, handler: EventHandler, event: DomainEvent) -> None:
        try:
            await handler(event)
        except Exception as e:
            logging.error(
                f"Unhandled exception in handler '{_handler_name(handler)}' for event "
                f"'{type(event).__name__}': {e}",
                exc_info=True,
            )
