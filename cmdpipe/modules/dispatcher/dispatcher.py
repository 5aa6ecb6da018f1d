"""
Dispatcher - the send side of a command invocation.

Listens on a fresh channel set, publishes the descriptor naming it, relays
this process's stdio against the channels and returns the remote exit status.
"""

import asyncio
import logging
import os
import sys
from typing import BinaryIO, List, Mapping, Optional, Sequence, Set

from cmdpipe.config import DispatchConfig
from cmdpipe.errors import PartialChannelSetError
from cmdpipe.modules.broker import Broker, queue_name
from cmdpipe.modules.channels import ChannelRole, ChannelSet
from cmdpipe.modules.descriptor import CommandDescriptor

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = -1
CHUNK_SIZE = 64 * 1024


def propagated_env(propagation: str, environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Parse a ';'-separated propagation list into KEY=VALUE entries.

    Entries that already contain '=' are forwarded verbatim. Bare names are
    looked up in environ and skipped when unset.
    """
    if environ is None:
        environ = os.environ
    entries = []
    for item in propagation.split(";"):
        item = item.strip()
        if not item:
            continue
        if "=" in item:
            entries.append(item)
        elif item in environ:
            entries.append(f"{item}={environ[item]}")
        else:
            logger.debug(f"Not propagating unset variable {item}")
    return entries


def read_available(source: BinaryIO) -> bytes:
    """Read whatever is available, up to one chunk; b"" at end of input."""
    read = getattr(source, "read1", source.read)
    return read(CHUNK_SIZE)


def parse_status(raw: bytes) -> int:
    """Decode the exit channel payload; -1 if it is not a decimal integer."""
    try:
        return int(raw.decode("ascii").strip())
    except (UnicodeDecodeError, ValueError):
        logger.error(f"Error converting exit code: {raw!r}")
        return UNKNOWN_STATUS


class Dispatcher:
    """Client role: one send() call is one remote program invocation."""

    def __init__(self, broker: Broker, config: Optional[DispatchConfig] = None):
        """
        Initialize dispatcher.

        Args:
            broker: Connected broker used to publish descriptors
            config: Channel directory, timeouts, strictness and env propagation
        """
        self.broker = broker
        self.config = config or DispatchConfig()

    @property
    def accept_timeout(self) -> Optional[float]:
        return self.config.channels.accept_timeout

    async def send(
        self,
        name: str,
        params: Sequence[str] = (),
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        stderr: Optional[BinaryIO] = None,
    ) -> int:
        """
        Run name remotely with params, relaying the given byte streams.

        Returns:
            The remote exit status, or -1 if it could not be determined

        Raises:
            ChannelSetupError: If a rendezvous point cannot be bound
            PartialChannelSetError: In strict mode, if any channel never connected
        """
        stdin = stdin if stdin is not None else sys.stdin.buffer
        stdout = stdout if stdout is not None else sys.stdout.buffer
        stderr = stderr if stderr is not None else sys.stderr.buffer
        failed: Set[str] = set()

        async with ChannelSet(self.config.channels.tmp_dir) as channels:
            relays = [
                asyncio.create_task(self._relay_to_local(channels, ChannelRole.OUT, stdout, failed)),
                asyncio.create_task(self._relay_to_local(channels, ChannelRole.ERR, stderr, failed)),
                asyncio.create_task(self._relay_from_local(channels, stdin, failed)),
            ]
            exit_task = asyncio.create_task(self._read_exit(channels, failed))

            descriptor = CommandDescriptor(
                name=name,
                params=list(params),
                env=propagated_env(self.config.env_spec),
                **channels.addresses(),
            )
            try:
                await self.broker.open_queue(queue_name(name)).publish(descriptor.to_payload())
            except BaseException:
                for task in relays + [exit_task]:
                    task.cancel()
                await asyncio.gather(*relays, exit_task, return_exceptions=True)
                raise
            logger.debug(f"Published [{name}] on channels {channels.suffix}")

            await asyncio.gather(*relays)
            try:
                status = await asyncio.wait_for(exit_task, self.config.channels.exit_timeout)
            except asyncio.TimeoutError:
                logger.error("Timed out waiting for exit status")
                failed.add(ChannelRole.EXIT.value)
                status = UNKNOWN_STATUS

        if failed and self.config.channels.strict:
            raise PartialChannelSetError(failed)
        return status

    async def _accept(self, channels: ChannelSet, role: ChannelRole, failed: Set[str]):
        try:
            return await channels.accept(role, self.accept_timeout)
        except asyncio.TimeoutError:
            logger.error(f"err opening {role.value} socket: no peer within {self.accept_timeout}s")
        except OSError as e:
            logger.error(f"err opening {role.value} socket: {e}")
        failed.add(role.value)
        return None

    async def _relay_to_local(
        self, channels: ChannelSet, role: ChannelRole, sink: BinaryIO, failed: Set[str]
    ) -> None:
        """Copy one remote stream (out or err) into a local stream until EOF."""
        pair = await self._accept(channels, role, failed)
        if pair is None:
            return
        reader, writer = pair
        try:
            while True:
                chunk = await reader.read(CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
                sink.flush()
        except OSError as e:
            logger.error(f"err relaying {role.value} socket: {e}")
        finally:
            writer.close()

    async def _relay_from_local(
        self, channels: ChannelSet, source: BinaryIO, failed: Set[str]
    ) -> None:
        """Copy local stdin to the in channel, then close it to signal EOF."""
        pair = await self._accept(channels, ChannelRole.IN, failed)
        if pair is None:
            return
        _, writer = pair
        try:
            if not source.isatty():
                while True:
                    chunk = await asyncio.to_thread(read_available, source)
                    if not chunk:
                        break
                    writer.write(chunk)
                    await writer.drain()
            if writer.can_write_eof():
                writer.write_eof()
        except OSError as e:
            # The program exited without reading all of its input
            logger.debug(f"Input channel closed early: {e}")
        finally:
            writer.close()

    async def _read_exit(self, channels: ChannelSet, failed: Set[str]) -> int:
        pair = await self._accept(channels, ChannelRole.EXIT, failed)
        if pair is None:
            return UNKNOWN_STATUS
        reader, writer = pair
        try:
            raw = await reader.read()
        except OSError as e:
            logger.error(f"err reading exit socket: {e}")
            return UNKNOWN_STATUS
        finally:
            writer.close()
        return parse_status(raw)
