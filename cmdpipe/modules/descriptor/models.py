"""
Command descriptor - the single handoff artifact between Dispatcher and Executor.

Wire format (JSON, field names as shown):
    {"name": "echo", "params": ["hi"], "env": ["FOO=bar"],
     "out": "cmdpipe-ab12cd-out", "in": "cmdpipe-ab12cd-in",
     "error": "cmdpipe-ab12cd-err", "exit": "cmdpipe-ab12cd-exit"}
"""

import logging
from typing import Dict, List, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cmdpipe.errors import DescriptorDecodeError

logger = logging.getLogger(__name__)


class CommandDescriptor(BaseModel):
    """Immutable request to run one program with four channel addresses."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Program to run; also the queue routing key")
    params: List[str] = Field(..., description="Arguments passed verbatim")
    env: List[str] = Field(default_factory=list, description="KEY=VALUE overrides")
    out: str = Field(..., description="Address of the stdout channel")
    in_: str = Field(..., alias="in", description="Address of the stdin channel")
    error: str = Field(..., description="Address of the stderr channel")
    exit: str = Field(..., description="Address of the exit-status channel")

    def to_payload(self) -> bytes:
        """Serialize to the queue payload."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_payload(cls, payload: Union[bytes, str]) -> "CommandDescriptor":
        """
        Decode a queue payload.

        Raises:
            DescriptorDecodeError: If the payload is not valid JSON or
                does not describe a command
        """
        try:
            return cls.model_validate_json(payload)
        except (ValidationError, ValueError) as e:
            raise DescriptorDecodeError(f"Invalid command descriptor: {e}") from e

    def env_overrides(self) -> List[Tuple[str, str]]:
        """Split the env entries into (key, value) pairs, in order."""
        pairs = []
        for entry in self.env:
            key, sep, value = entry.partition("=")
            if not sep or not key:
                logger.warning(f"Ignoring malformed environment entry: {entry!r}")
                continue
            pairs.append((key, value))
        return pairs

    def apply_env(self, base: Mapping[str, str]) -> Dict[str, str]:
        """Return base with the overrides appended; later entries win."""
        environment = dict(base)
        for key, value in self.env_overrides():
            environment[key] = value
        return environment
