"""
Descriptor Module - Black Box Interface

Purpose: Describe one requested command invocation
Interface: CommandDescriptor (to_payload, from_payload, apply_env)
Hidden: Serialization format, validation

The descriptor is immutable once built and carries no state besides
the program, its arguments and environment, and the channel addresses.
"""

from .models import CommandDescriptor

__all__ = ["CommandDescriptor"]
