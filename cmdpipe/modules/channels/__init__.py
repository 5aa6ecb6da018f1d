"""
Channels Module - Black Box Interface

Purpose: Four byte-stream rendezvous points per invocation (out, in, err, exit)
Interface: ChannelSet (listen/accept/cleanup), dial_channels(), DialedChannels
Hidden: Unix-domain sockets, naming, file cleanup

The Dispatcher always listens and the Executor always dials, for all four
channels including exit.
"""

from .channels import (
    ChannelRole,
    ChannelSet,
    DialedChannels,
    dial_channels,
    generate_suffix,
    resolve_address,
    socket_name,
)

__all__ = [
    "ChannelRole",
    "ChannelSet",
    "DialedChannels",
    "dial_channels",
    "generate_suffix",
    "resolve_address",
    "socket_name",
]
