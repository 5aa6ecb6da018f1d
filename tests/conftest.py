"""
Shared pytest fixtures for cmdpipe tests.

This module provides common fixtures including:
- Short temporary directories for Unix-domain sockets
- A Redis mock for broker tests
- A Dispatcher/Executor harness running both roles over the in-memory broker
"""

import asyncio
import io
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass
from typing import List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cmdpipe.config import BrokerConfig, ChannelConfig, DispatchConfig
from cmdpipe.modules.broker import InMemoryBroker, queue_name
from cmdpipe.modules.dispatcher import Dispatcher
from cmdpipe.modules.executor import CommandExecutor


# =============================================================================
# Filesystem
# =============================================================================

@pytest.fixture
def socket_dir():
    """
    Temporary directory for rendezvous sockets.

    Created directly under /tmp because Unix socket paths are limited to
    about 100 bytes and pytest's tmp_path can be longer than that.
    """
    path = tempfile.mkdtemp(prefix="cmdpipe-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def channel_config(socket_dir):
    return ChannelConfig(tmp_dir=socket_dir)


# =============================================================================
# Redis Mocking
# =============================================================================

@pytest.fixture
def redis_mock():
    """Create a mock async Redis client."""
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    redis.lpush = AsyncMock()
    redis.llen = AsyncMock(return_value=0)
    redis.lmove = AsyncMock(return_value=None)
    redis.lrem = AsyncMock(return_value=1)
    redis.aclose = AsyncMock()

    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, 1])
    redis.pipeline = MagicMock(return_value=pipe)
    return redis


# =============================================================================
# Send/Receive Harness
# =============================================================================

@dataclass
class Invocation:
    """Outcome of one Dispatcher.send() seen from the client side."""
    status: int
    stdout: bytes
    stderr: bytes


class PipeHarness:
    """
    Runs a Dispatcher and a CommandExecutor in the same event loop.

    Both sides talk over an InMemoryBroker and real Unix sockets, so the
    full handshake, the relays and the subprocess wiring are exercised.
    """

    def __init__(self, socket_dir: str):
        self.socket_dir = socket_dir
        self.broker = InMemoryBroker()

    def channel_config(self, **overrides) -> ChannelConfig:
        return ChannelConfig(tmp_dir=self.socket_dir, **overrides)

    def executor(self, allowed_name: str, environ=None) -> CommandExecutor:
        return CommandExecutor(
            allowed_name,
            channels=self.channel_config(),
            broker_config=BrokerConfig(url="memory://", poll_interval=0.05),
            environ=environ,
        )

    async def invoke(
        self,
        name: str,
        params: Sequence[str] = (),
        stdin: bytes = b"",
        allowed_name: Optional[str] = None,
        consume_queue: Optional[str] = None,
        env_spec: str = "",
        environ=None,
        timeout: float = 15,
        **channel_overrides,
    ) -> Invocation:
        """
        Send name/params and serve it with an executor allowing allowed_name.

        consume_queue lets the executor listen on a queue other than its own,
        to deliver descriptors it is not allowed to run.
        """
        executor = self.executor(allowed_name or name, environ=environ)
        queue = self.broker.open_queue(consume_queue or queue_name(executor.allowed_name))
        worker = asyncio.create_task(queue.consume(executor.handle, poll_interval=0.05))

        dispatcher = Dispatcher(
            self.broker,
            DispatchConfig(channels=self.channel_config(**channel_overrides), env_spec=env_spec),
        )
        stdout, stderr = io.BytesIO(), io.BytesIO()
        try:
            status = await asyncio.wait_for(
                dispatcher.send(name, params, stdin=io.BytesIO(stdin), stdout=stdout, stderr=stderr),
                timeout,
            )
        finally:
            queue.stop_consuming()
            await asyncio.wait_for(worker, 5)

        return Invocation(status=status, stdout=stdout.getvalue(), stderr=stderr.getvalue())

    def socket_files(self) -> List[str]:
        return [f for f in os.listdir(self.socket_dir) if f.startswith("cmdpipe-")]


@pytest.fixture
def harness(socket_dir):
    return PipeHarness(socket_dir)
