"""Exception hierarchy shared by all cmdpipe modules."""

from typing import Iterable


class CmdpipeError(Exception):
    """Base class for cmdpipe errors."""


class TransportSetupError(CmdpipeError):
    """The broker connection or a rendezvous point could not be set up."""


class BrokerConnectionError(TransportSetupError):
    """The queue broker could not be reached."""


class ChannelSetupError(TransportSetupError):
    """A rendezvous socket could not be bound."""


class DescriptorDecodeError(CmdpipeError):
    """A queue payload is not a valid command descriptor."""


class PartialChannelSetError(CmdpipeError):
    """One or more channels never connected during an invocation."""

    def __init__(self, roles: Iterable[str]):
        self.roles = sorted(roles)
        super().__init__(f"Channels not connected: {', '.join(self.roles)}")
