"""
Dispatcher Module - Black Box Interface

Purpose: Send one command to a worker and relay local stdio against it
Interface: Dispatcher.send(), propagated_env()
Hidden: Channel handshake, relay tasks, exit-status parsing

Channels are always listening before the descriptor is published.
"""

from .dispatcher import UNKNOWN_STATUS, Dispatcher, parse_status, propagated_env

__all__ = ["Dispatcher", "UNKNOWN_STATUS", "parse_status", "propagated_env"]
