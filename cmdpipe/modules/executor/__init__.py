"""
Executor Module - Black Box Interface

Purpose: Worker that runs one allow-listed program per queued descriptor
Interface: CommandExecutor.run(), handle(), execute()
Hidden: Channel dialing, subprocess wiring, status reporting

Anyone able to publish to the command's queue can pass arbitrary arguments
and environment to the allowed program; the name check is the only guard.
"""

from .executor import CommandExecutor, termination_status

__all__ = ["CommandExecutor", "termination_status"]
