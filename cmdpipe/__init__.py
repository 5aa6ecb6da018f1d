"""
cmdpipe - run a predetermined command on a decoupled worker process

A message queue carries the request, four Unix-domain sockets carry the data.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- descriptor: Command descriptor model and wire format
- channels: Per-invocation rendezvous sockets (out, in, err, exit)
- broker: Queue broker adapter (Redis, in-memory)
- dispatcher: Client role - publish a command and relay local stdio
- executor: Worker role - consume commands, run the program, report status
"""

__version__ = "1.0.0"
