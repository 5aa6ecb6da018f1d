"""
Per-invocation channel set.

The Dispatcher owns four Unix-domain rendezvous sockets (out, in, err, exit).
It listens on all of them before the descriptor naming them is published,
accepts exactly one peer per socket, and removes the socket files when done.
The Executor only dials the addresses it finds in the descriptor.
"""

import asyncio
import contextlib
import logging
import os
import secrets
import socket
import string
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from cmdpipe.errors import ChannelSetupError
from cmdpipe.modules.descriptor import CommandDescriptor

logger = logging.getLogger(__name__)

SOCKET_PREFIX = "cmdpipe"
SUFFIX_ALPHABET = string.ascii_letters + string.digits


class ChannelRole(str, Enum):
    """The four channels of one invocation."""

    OUT = "out"
    IN = "in"
    ERR = "err"
    EXIT = "exit"


def generate_suffix(length: int = 6) -> str:
    """Random suffix that keeps concurrent invocations apart."""
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def socket_name(role: ChannelRole, suffix: str) -> str:
    """Rendezvous point name: cmdpipe-<suffix>-<role>."""
    return f"{SOCKET_PREFIX}-{suffix}-{ChannelRole(role).value}"


def resolve_address(base_dir: str, address: str) -> str:
    """Join a descriptor address to the base directory (absolute paths win)."""
    return os.path.join(base_dir, address)


StreamPair = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


class ChannelSet:
    """
    Listening side of the four channels.

    Usage:
        async with ChannelSet("/tmp") as channels:
            descriptor_addresses = channels.addresses()
            reader, writer = await channels.accept(ChannelRole.OUT)

    Sockets are removed on exit whether or not a peer ever connected.
    """

    def __init__(self, base_dir: str, suffix: Optional[str] = None):
        self.base_dir = base_dir
        self.suffix = suffix or generate_suffix()
        self.names: Dict[ChannelRole, str] = {
            role: socket_name(role, self.suffix) for role in ChannelRole
        }
        self._servers: Dict[ChannelRole, asyncio.AbstractServer] = {}
        self._pending: Dict[ChannelRole, asyncio.Future] = {}

    def path(self, role: ChannelRole) -> str:
        """Filesystem path of a rendezvous point."""
        return resolve_address(self.base_dir, self.names[role])

    def addresses(self) -> Dict[str, str]:
        """Descriptor fields for this channel set."""
        return {
            "out": self.names[ChannelRole.OUT],
            "in": self.names[ChannelRole.IN],
            "error": self.names[ChannelRole.ERR],
            "exit": self.names[ChannelRole.EXIT],
        }

    async def open(self) -> "ChannelSet":
        """
        Bind and listen on all four rendezvous points.

        Raises:
            ChannelSetupError: If any socket cannot be bound or its path is
                already taken. Points already bound by this call are removed
                before raising.
        """
        loop = asyncio.get_running_loop()
        for role in ChannelRole:
            if os.path.lexists(self.path(role)):
                # start_unix_server would unlink it and steal another invocation's point
                self.cleanup()
                raise ChannelSetupError(f"Rendezvous point already exists: {self.path(role)}")
            self._pending[role] = loop.create_future()
            try:
                self._servers[role] = await asyncio.start_unix_server(
                    self._connection_handler(role), path=self.path(role)
                )
            except OSError as e:
                self.cleanup()
                raise ChannelSetupError(
                    f"Cannot listen on {self.path(role)}: {e}"
                ) from e
            logger.debug(f"Listening on {self.path(role)}")
        return self

    def _connection_handler(self, role: ChannelRole):
        def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            future = self._pending.get(role)
            if future is None or future.done():
                # Only one peer per channel
                writer.close()
                return
            future.set_result((reader, writer))
            server = self._servers.get(role)
            if server is not None:
                server.close()

        return on_connect

    async def accept(self, role: ChannelRole, timeout: Optional[float] = None) -> StreamPair:
        """
        Wait for the single peer connection on a channel.

        Args:
            role: Channel to accept on
            timeout: Seconds to wait, None waits until the peer dials

        Raises:
            asyncio.TimeoutError: If no peer connected within the timeout.
                The channel stops listening afterwards.
        """
        future = self._pending.get(role)
        if future is None:
            raise RuntimeError("Channel set is not open")
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            server = self._servers.get(role)
            if server is not None:
                server.close()
            raise

    def cleanup(self) -> None:
        """Stop listening and remove every socket file. Safe to call twice."""
        for server in self._servers.values():
            server.close()
        for future in self._pending.values():
            if not future.done():
                future.cancel()
            elif not future.cancelled() and future.exception() is None:
                _, writer = future.result()
                writer.close()
        # Only points this set bound are ours to remove
        for role in self._servers:
            with contextlib.suppress(FileNotFoundError):
                os.remove(self.path(role))

    async def __aenter__(self) -> "ChannelSet":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


@dataclass
class DialedChannels:
    """Connections held by the Executor for one delivery; any may be None."""

    out: Optional[socket.socket] = None
    in_: Optional[socket.socket] = None
    err: Optional[socket.socket] = None
    exit: Optional[socket.socket] = None

    def sockets(self) -> Dict[ChannelRole, Optional[socket.socket]]:
        return {
            ChannelRole.OUT: self.out,
            ChannelRole.IN: self.in_,
            ChannelRole.ERR: self.err,
            ChannelRole.EXIT: self.exit,
        }

    def missing(self) -> List[str]:
        """Roles whose dial failed."""
        return [role.value for role, sock in self.sockets().items() if sock is None]

    def write_exit(self, status: int) -> bool:
        """Send the decimal exit status; returns False if it could not be sent."""
        if self.exit is None:
            logger.error(f"No exit channel to report status {status}")
            return False
        try:
            self.exit.sendall(str(status).encode("ascii"))
        except OSError as e:
            logger.error(f"Error writing exit status {status}: {e}")
            return False
        return True

    def close(self) -> None:
        """Close all connections; closing exit tells the Dispatcher we are done."""
        for sock in self.sockets().values():
            if sock is not None:
                sock.close()


def _dial(path: str) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(path)
    except OSError:
        sock.close()
        raise
    return sock


def dial_channels(descriptor: CommandDescriptor, base_dir: str) -> DialedChannels:
    """
    Connect to the descriptor's channels in the order out, in, error, exit.

    A failed dial is logged and leaves that channel as None; the remaining
    channels are still dialed.
    """
    dialed = DialedChannels()
    for attr, label, address in (
        ("out", "output", descriptor.out),
        ("in_", "input", descriptor.in_),
        ("err", "error", descriptor.error),
        ("exit", "exit", descriptor.exit),
    ):
        path = resolve_address(base_dir, address)
        try:
            setattr(dialed, attr, _dial(path))
        except OSError as e:
            logger.error(f"Error dialing {label} {address}: {e}")
    return dialed
