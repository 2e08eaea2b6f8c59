"""
Connection Table - Outbound queues for live sockets.

The transport owns one queue per socket and drains it with a sender
task. Sessions refer to a socket only by its connection id; sending is
a non-blocking put, so it is safe to do right after a state change.
"""

from __future__ import annotations
from typing import Any
import asyncio
import logging
import uuid

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ConnectionTable:
    """connection id -> outbound message queue."""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue] = {}

    def __len__(self) -> int:
        return len(self._queues)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._queues

    def open(self) -> tuple[str, asyncio.Queue]:
        """Register a new connection and return its id and queue."""
        connection_id = str(uuid.uuid4())
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[connection_id] = queue
        return connection_id, queue

    def close(self, connection_id: str) -> None:
        self._queues.pop(connection_id, None)

    def send(self, connection_id: str, message: BaseModel | dict[str, Any]) -> bool:
        """
        Queue a message for a connection.

        Returns False if the connection is already gone.
        """
        queue = self._queues.get(connection_id)
        if queue is None:
            logger.debug("dropping message for closed connection %s", connection_id)
            return False
        if isinstance(message, BaseModel):
            message = message.model_dump(mode="json")
        queue.put_nowait(message)
        return True
