"""
Command Executor - the receive side of a command invocation.

Consumes descriptors from the queue of exactly one allowed command, dials the
channels they name, runs the program with its stdio wired to those channels
and writes the termination status to the exit channel.

Commands run strictly one at a time: the next delivery is not handled until
the current program has exited and its status has been reported.
"""

import asyncio
import logging
import os
import subprocess
from typing import Mapping, Optional

from cmdpipe.config import BrokerConfig, ChannelConfig
from cmdpipe.errors import DescriptorDecodeError
from cmdpipe.modules.broker import Broker, Delivery, queue_name
from cmdpipe.modules.channels import DialedChannels, dial_channels
from cmdpipe.modules.descriptor import CommandDescriptor

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = -1


def termination_status(returncode: Optional[int]) -> int:
    """Map a subprocess return code to the reported status (-1 if signaled)."""
    if returncode is None or returncode < 0:
        return UNKNOWN_STATUS
    return returncode


class CommandExecutor:
    """Worker role serving a single allowed command name."""

    def __init__(
        self,
        allowed_name: str,
        channels: Optional[ChannelConfig] = None,
        broker_config: Optional[BrokerConfig] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize executor.

        Args:
            allowed_name: The only program this worker will run
            channels: Base directory used to resolve channel addresses
            broker_config: Prefetch and poll interval for the consumer
            environ: Inherited environment (defaults to os.environ)
        """
        self.allowed_name = allowed_name
        self.channels = channels or ChannelConfig()
        self.broker_config = broker_config
        self.environ = environ
        self._queue = None

    @property
    def queue_name(self) -> str:
        return queue_name(self.allowed_name)

    async def run(self, broker: Broker) -> None:
        """Consume the allowed command's queue until stopped."""
        self._queue = broker.open_queue(self.queue_name)
        prefetch, poll_interval = 10, 0.4
        if self.broker_config is not None:
            prefetch = self.broker_config.prefetch
            poll_interval = self.broker_config.poll_interval

        logger.info(f"Serving [{self.allowed_name}] from {self.queue_name}")
        await self._queue.consume(self.handle, prefetch=prefetch, poll_interval=poll_interval)

    def stop(self) -> None:
        if self._queue is not None:
            self._queue.stop_consuming()

    async def handle(self, delivery: Delivery) -> None:
        """Process one delivery: decode, dial, authorize, run, report."""
        try:
            descriptor = CommandDescriptor.from_payload(delivery.payload)
        except DescriptorDecodeError as e:
            logger.error(f"Problem unmarshalling payload {delivery.payload!r}: {e}")
            return

        dialed = await asyncio.to_thread(dial_channels, descriptor, self.channels.tmp_dir)
        try:
            logger.info(f"Got command [{descriptor.name}]")
            if descriptor.name != self.allowed_name:
                logger.warning(f"Rejecting [{descriptor.name}]")
                await delivery.reject()
                return

            missing = dialed.missing()
            if missing:
                logger.warning(f"Running [{descriptor.name}] without channels: {', '.join(missing)}")

            status = await self.execute(descriptor, dialed)
            logger.info(f"Writing to exit channel <- {status}")
            dialed.write_exit(status)
        finally:
            dialed.close()

        await delivery.ack()
        logger.info(f"Command [{descriptor.name}] completed")

    async def execute(self, descriptor: CommandDescriptor, dialed: DialedChannels) -> int:
        """
        Run the allowed program with the descriptor's arguments and environment.

        Returns:
            0 on a clean exit, the exit code otherwise, -1 if the program could
            not be started or was killed by a signal
        """
        environ = os.environ if self.environ is None else self.environ
        try:
            process = await asyncio.create_subprocess_exec(
                self.allowed_name,
                *descriptor.params,
                env=descriptor.apply_env(environ),
                stdin=dialed.in_ if dialed.in_ is not None else subprocess.DEVNULL,
                stdout=dialed.out if dialed.out is not None else subprocess.DEVNULL,
                stderr=dialed.err if dialed.err is not None else subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Non exit-error running command: {e}")
            return UNKNOWN_STATUS

        logger.debug(f"Command started (pid {process.pid})")
        returncode = await process.wait()
        if returncode < 0:
            logger.warning(f"Command killed by signal {-returncode}")
        return termination_status(returncode)
