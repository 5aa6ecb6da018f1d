"""
Redis-backed broker.

Each queue is a set of Redis lists:
    <service>::queue::[<queue>]::ready             published, not yet fetched
    <service>::queue::[<queue>]::unacked::<tag>    fetched by one consumer
    <service>::queue::[<queue>]::rejected          rejected by a consumer

Publishing pushes onto ready. A consumer moves payloads from ready to its own
unacked list, which is what makes delivery at-least-once: a payload that is
never acked stays in unacked and can be returned to ready.
"""

import asyncio
import logging
import uuid
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from cmdpipe.errors import BrokerConnectionError

from .base import Broker, BrokerQueue, Delivery, DeliveryHandler

logger = logging.getLogger(__name__)


class RedisDelivery(Delivery):
    """Payload sitting in a consumer's unacked list."""

    def __init__(self, queue: "RedisQueue", payload: bytes, unacked_key: str):
        self._queue = queue
        self._payload = payload
        self._unacked_key = unacked_key

    @property
    def payload(self) -> bytes:
        return self._payload

    async def ack(self) -> bool:
        removed = await self._queue.redis.lrem(self._unacked_key, 1, self._payload)
        return removed == 1

    async def reject(self) -> bool:
        pipe = self._queue.redis.pipeline(transaction=True)
        pipe.lrem(self._unacked_key, 1, self._payload)
        pipe.lpush(self._queue.rejected_key, self._payload)
        removed, _ = await pipe.execute()
        return removed == 1


class RedisQueue(BrokerQueue):
    """One named queue on a Redis connection."""

    def __init__(self, redis_client, service: str, name: str):
        self.redis = redis_client
        self.service = service
        self.name = name
        self.consumer_tag = f"{name}-{uuid.uuid4().hex[:8]}"
        self._running = False

    def _key(self, suffix: str) -> str:
        return f"{self.service}::queue::[{self.name}]::{suffix}"

    @property
    def ready_key(self) -> str:
        return self._key("ready")

    @property
    def rejected_key(self) -> str:
        return self._key("rejected")

    @property
    def unacked_key(self) -> str:
        return self._key(f"unacked::{self.consumer_tag}")

    async def publish(self, payload: bytes) -> None:
        await self.redis.lpush(self.ready_key, payload)
        logger.debug(f"Published {len(payload)} bytes to {self.name}")

    async def fetch(self, prefetch: int) -> list:
        """Move up to prefetch payloads from ready into this consumer's unacked list."""
        deliveries = []
        for _ in range(max(prefetch, 1)):
            payload = await self.redis.lmove(self.ready_key, self.unacked_key, "RIGHT", "LEFT")
            if payload is None:
                break
            deliveries.append(RedisDelivery(self, payload, self.unacked_key))
        return deliveries

    async def consume(
        self,
        handler: DeliveryHandler,
        prefetch: int = 10,
        poll_interval: float = 0.4,
    ) -> None:
        self._running = True
        logger.info(f"Consumer {self.consumer_tag} started on {self.name}")

        while self._running:
            try:
                deliveries = await self.fetch(prefetch)
            except RedisError as e:
                logger.error(f"Error fetching from {self.name}: {e}")
                await asyncio.sleep(poll_interval)
                continue

            if not deliveries:
                await asyncio.sleep(poll_interval)
                continue

            for delivery in deliveries:
                if not self._running:
                    break
                try:
                    await handler(delivery)
                except Exception as e:
                    logger.error(f"Error processing delivery on {self.name}: {e}")

        logger.info(f"Consumer {self.consumer_tag} stopped")

    def stop_consuming(self) -> None:
        self._running = False

    async def ready_count(self) -> int:
        return await self.redis.llen(self.ready_key)

    async def rejected_count(self) -> int:
        return await self.redis.llen(self.rejected_key)

    async def unacked_count(self) -> int:
        return await self.redis.llen(self.unacked_key)

    async def return_rejected(self) -> int:
        return await self._drain(self.rejected_key)

    async def return_unacked(self) -> int:
        """Requeue everything this consumer fetched but never acked or rejected."""
        return await self._drain(self.unacked_key)

    async def _drain(self, source_key: str) -> int:
        count = 0
        while await self.redis.lmove(source_key, self.ready_key, "RIGHT", "LEFT") is not None:
            count += 1
        if count:
            logger.info(f"Returned {count} deliveries to {self.name}")
        return count


class RedisBroker(Broker):
    """Broker connection scoped by a service identifier."""

    def __init__(self, url: str, service: str = "cmdpipe", redis_client=None):
        """
        Initialize Redis broker.

        Args:
            url: Redis URL (redis://host:port/db or unix:///path/redis.sock)
            service: Namespace prefix for all queue keys
            redis_client: Pre-built async Redis client (skips from_url)
        """
        self.url = url
        self.service = service
        self.redis: Optional[redis.Redis] = redis_client

    async def connect(self) -> None:
        if self.redis is None:
            self.redis = redis.from_url(self.url, decode_responses=False)
        try:
            await self.redis.ping()
        except (RedisError, OSError) as e:
            raise BrokerConnectionError(f"Cannot connect to broker at {self.url}: {e}") from e
        logger.debug(f"Connected to broker at {self.url}")

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()

    def open_queue(self, name: str) -> RedisQueue:
        if self.redis is None:
            raise BrokerConnectionError("Broker is not connected")
        return RedisQueue(self.redis, self.service, name)
