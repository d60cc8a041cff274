"""In-process broadcaster for server-sent record events."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import AsyncGenerator
from typing import Any

logger = logging.getLogger(__name__)

QUEUE_SIZE = 100


class SSEHub:
    """Fans record events out to connected EventSource clients.

    Each client owns an asyncio.Queue bound to the loop it subscribed on.
    ``publish`` may be called from worker threads; it hands messages to each
    client's loop with ``call_soon_threadsafe``.
    """

    def __init__(self, queue_size: int = QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._clients: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._lock = threading.Lock()

    async def subscribe(self) -> AsyncGenerator[str, None]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=self._queue_size)
        client = (loop, queue)
        with self._lock:
            self._clients.append(client)
        try:
            yield ": connected\n\n"
            while True:
                message = await queue.get()
                if message is None:
                    break
                yield message
        finally:
            self._remove(client)

    def publish(self, event_type: str, data: dict[str, Any]) -> None:
        message = f"event: {event_type}\ndata: {json.dumps(data, default=str)}\n\n"
        with self._lock:
            clients = list(self._clients)
        for client in clients:
            loop, _queue = client
            try:
                loop.call_soon_threadsafe(self._deliver, client, message)
            except RuntimeError:
                # loop already closed
                self._remove(client)

    def _deliver(self, client, message: str) -> None:
        _loop, queue = client
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("SSE client queue full; disconnecting")
            self._remove(client)
            self._close(queue)

    @staticmethod
    def _close(queue: asyncio.Queue) -> None:
        # Drop undelivered messages so the end-of-stream marker always fits
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(None)

    def _remove(self, client) -> None:
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)

    def shutdown(self) -> None:
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for loop, queue in clients:
            try:
                loop.call_soon_threadsafe(self._close, queue)
            except RuntimeError:
                continue

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)


sse_hub = SSEHub()


def get_sse_hub() -> SSEHub:
    return sse_hub
