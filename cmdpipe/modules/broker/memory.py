"""
In-memory broker for development and tests.

Single process only: queues are asyncio.Queue instances keyed by
(service, queue name). Rejected and unacked payloads are kept in lists so
they can be inspected and returned.
"""

import asyncio
import logging
from typing import Dict, List, Tuple

from .base import Broker, BrokerQueue, Delivery, DeliveryHandler

logger = logging.getLogger(__name__)


class MemoryDelivery(Delivery):
    def __init__(self, queue: "MemoryQueue", payload: bytes):
        self._queue = queue
        self._payload = payload
        self.state = "unacked"

    @property
    def payload(self) -> bytes:
        return self._payload

    async def ack(self) -> bool:
        if self.state != "unacked":
            return False
        self.state = "acked"
        self._queue.unacked.remove(self)
        return True

    async def reject(self) -> bool:
        if self.state != "unacked":
            return False
        self.state = "rejected"
        self._queue.unacked.remove(self)
        self._queue.rejected.append(self._payload)
        return True


class MemoryQueue(BrokerQueue):
    def __init__(self, name: str):
        self.name = name
        self.ready: asyncio.Queue = asyncio.Queue()
        self.unacked: List[MemoryDelivery] = []
        self.rejected: List[bytes] = []
        self.published: List[bytes] = []
        self._running = False

    async def publish(self, payload: bytes) -> None:
        self.published.append(payload)
        await self.ready.put(payload)

    async def consume(
        self,
        handler: DeliveryHandler,
        prefetch: int = 10,
        poll_interval: float = 0.4,
    ) -> None:
        self._running = True
        logger.info(f"Consumer started on {self.name}")
        while self._running:
            try:
                payload = await asyncio.wait_for(self.ready.get(), poll_interval)
            except asyncio.TimeoutError:
                continue
            delivery = MemoryDelivery(self, payload)
            self.unacked.append(delivery)
            try:
                await handler(delivery)
            except Exception as e:
                logger.error(f"Error processing delivery on {self.name}: {e}")
        logger.info(f"Consumer stopped on {self.name}")

    def stop_consuming(self) -> None:
        self._running = False

    async def ready_count(self) -> int:
        return self.ready.qsize()

    async def rejected_count(self) -> int:
        return len(self.rejected)

    async def unacked_count(self) -> int:
        return len(self.unacked)

    async def return_rejected(self) -> int:
        count = len(self.rejected)
        for payload in self.rejected:
            await self.ready.put(payload)
        self.rejected.clear()
        return count

    async def return_unacked(self) -> int:
        count = len(self.unacked)
        for delivery in self.unacked:
            delivery.state = "returned"
            await self.ready.put(delivery.payload)
        self.unacked.clear()
        return count


class InMemoryBroker(Broker):
    """Broker whose queues live in this process."""

    def __init__(self, service: str = "cmdpipe"):
        self.service = service
        self._queues: Dict[Tuple[str, str], MemoryQueue] = {}
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        for queue in self._queues.values():
            queue.stop_consuming()
        self.connected = False

    def open_queue(self, name: str) -> MemoryQueue:
        key = (self.service, name)
        if key not in self._queues:
            self._queues[key] = MemoryQueue(name)
        return self._queues[key]
