"""
Broker Module - Black Box Interface

Purpose: Transport command descriptors between Dispatcher and Executor
Interface: Broker.open_queue(), BrokerQueue.publish()/consume(), Delivery.ack()/reject()
Hidden: Redis key layout, fetch/poll loop, in-flight bookkeeping

Delivery is at-least-once. Can be replaced with any queue that offers
publish, consume and reject.
"""

from .base import Broker, BrokerQueue, Delivery, DeliveryHandler, queue_name
from .memory import InMemoryBroker
from .redis_broker import RedisBroker, RedisDelivery, RedisQueue

__all__ = [
    "Broker",
    "BrokerQueue",
    "Delivery",
    "DeliveryHandler",
    "InMemoryBroker",
    "RedisBroker",
    "RedisDelivery",
    "RedisQueue",
    "queue_name",
]
