from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any


class EventBus:
    """Fan-out of progress events to every subscriber of an owner.

    Queues are unbounded, so publishing never blocks and events reach each
    subscriber in the order they were published.
    """

    def __init__(self) -> None:
        self._queues: dict[str, list[asyncio.Queue[dict[str, Any]]]] = defaultdict(list)

    def publish_nowait(self, owner_id: str, event: dict[str, Any]) -> None:
        for queue in list(self._queues.get(owner_id, [])):
            queue.put_nowait(event)

    async def publish(self, owner_id: str, event: dict[str, Any]) -> None:
        self.publish_nowait(owner_id, event)

    def subscriber_count(self, owner_id: str) -> int:
        return len(self._queues.get(owner_id, []))

    async def subscribe(self, owner_id: str) -> AsyncIterator[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._queues[owner_id].append(queue)

        try:
            while True:
                yield await queue.get()
        finally:
            queues = self._queues.get(owner_id, [])
            if queue in queues:
                queues.remove(queue)
            if not queues:
                self._queues.pop(owner_id, None)
