import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

# Latest message of these types is replayed to clients that connect later
REPLAYED_TYPES = ("servers-updated", "dependency-status")


class WebSocketManager:
    """
    Fans ``{"type": ..., "data": ...}`` messages out to every UI connection.

    Publishers only enqueue; a single sender task does the socket I/O, so a
    slow or dead client never stalls the event bus.
    """

    def __init__(self):
        self._connections: List[WebSocket] = []
        self._queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self._sender_task: Optional[asyncio.Task] = None
        self._last_by_type: Dict[str, Dict[str, Any]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def start_sender_task(self) -> None:
        if self._sender_task is None:
            self._sender_task = asyncio.create_task(self._send_loop())
            logging.info("UI message sender started")

    def stop_sender_task(self) -> None:
        if self._sender_task is not None:
            self._sender_task.cancel()
            self._sender_task = None
            logging.info("UI message sender stopped")

    def broadcast(self, message_type: str, data: Dict[str, Any]) -> None:
        message = {"type": message_type, "data": data}
        if message_type in REPLAYED_TYPES:
            self._last_by_type[message_type] = message
        self._queue.put_nowait(message)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        for message in list(self._last_by_type.values()):
            if not await self._send(websocket, message):
                return
        self._connections.append(websocket)
        logging.info(f"UI client connected ({len(self._connections)} open)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.remove(websocket)
            logging.info(f"UI client disconnected ({len(self._connections)} open)")

    async def flush(self) -> None:
        """Wait until every queued message has been handed to the clients."""
        await self._queue.join()

    async def _send_loop(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._deliver(message)
            finally:
                self._queue.task_done()

    async def _deliver(self, message: Dict[str, Any]) -> None:
        for websocket in list(self._connections):
            if not await self._send(websocket, message):
                self.disconnect(websocket)

    async def _send(self, websocket: WebSocket, message: Dict[str, Any]) -> bool:
        try:
            await websocket.send_json(message)
        except Exception as e:
            logging.debug(f"Dropping UI client after failed {message['type']} send: {e}")
            return False
        return True
