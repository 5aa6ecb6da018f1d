"""Abstract broker interface shared by the Redis and in-memory backends."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

QUEUE_PREFIX = "command:"


def queue_name(command: str) -> str:
    """Queue serving one command name."""
    return QUEUE_PREFIX + command


class Delivery(ABC):
    """One payload handed to a consumer."""

    @property
    @abstractmethod
    def payload(self) -> bytes:
        ...

    @abstractmethod
    async def ack(self) -> bool:
        """Mark the delivery as consumed."""
        ...

    @abstractmethod
    async def reject(self) -> bool:
        """Hand the delivery back as not consumed by this worker."""
        ...


DeliveryHandler = Callable[[Delivery], Awaitable[None]]


class BrokerQueue(ABC):
    """A named queue on a broker connection."""

    name: str

    @abstractmethod
    async def publish(self, payload: bytes) -> None:
        ...

    @abstractmethod
    async def consume(
        self,
        handler: DeliveryHandler,
        prefetch: int = 10,
        poll_interval: float = 0.4,
    ) -> None:
        """
        Deliver payloads to handler, one at a time, until stopped.

        Args:
            handler: Awaited for each delivery before the next one is taken
            prefetch: Maximum deliveries in flight for this consumer
            poll_interval: Seconds to sleep when the queue is empty
        """
        ...

    @abstractmethod
    def stop_consuming(self) -> None:
        ...

    @abstractmethod
    async def ready_count(self) -> int:
        ...

    @abstractmethod
    async def rejected_count(self) -> int:
        ...

    @abstractmethod
    async def unacked_count(self) -> int:
        ...

    @abstractmethod
    async def return_rejected(self) -> int:
        """Move rejected deliveries back to ready; returns how many."""
        ...

    @abstractmethod
    async def return_unacked(self) -> int:
        """Requeue deliveries fetched by this consumer but never acked or rejected."""
        ...


class Broker(ABC):
    """Connection to a queue broker."""

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection.

        Raises:
            BrokerConnectionError: If the broker cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def open_queue(self, name: str) -> BrokerQueue:
        ...

    async def __aenter__(self) -> "Broker":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
