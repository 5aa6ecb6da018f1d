"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol

DEFAULT_TMP_DIR = "/tmp"
DEFAULT_SERVICE = "cmdpipe"


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass
class BrokerConfig:
    """Queue broker configuration."""
    url: str
    service: str = DEFAULT_SERVICE
    prefetch: int = 10
    poll_interval: float = 0.4


@dataclass
class ChannelConfig:
    """Rendezvous point configuration."""
    tmp_dir: str = DEFAULT_TMP_DIR
    accept_timeout: Optional[float] = None
    exit_timeout: Optional[float] = None
    strict: bool = False


@dataclass
class DispatchConfig:
    """Settings for one Dispatcher instance."""
    channels: ChannelConfig = field(default_factory=ChannelConfig)
    env_spec: str = ""


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_broker_config(self) -> BrokerConfig:
        """Get broker configuration."""
        ...

    def get_channel_config(self) -> ChannelConfig:
        """Get rendezvous point configuration."""
        ...

    def get_dispatch_config(self) -> DispatchConfig:
        """Get dispatcher configuration."""
        ...

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._env: Dict[str, str] = dict(os.environ if environ is None else environ)

    def _get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._env.get(key)
        if value is None or value == "":
            return default
        return value

    def get_tmp_dir(self) -> str:
        """Directory holding the rendezvous sockets."""
        return self._get("CMDPIPE_TMP_DIR", DEFAULT_TMP_DIR)

    def get_broker_config(self) -> BrokerConfig:
        """Get broker configuration from environment variables."""
        default_url = "unix://" + os.path.join(self.get_tmp_dir(), "redis.sock")
        return BrokerConfig(
            url=self._get("CMDPIPE_REDIS_URL", default_url),
            service=self._get("CMDPIPE_SERVICE", DEFAULT_SERVICE),
            prefetch=int(self._get("CMDPIPE_PREFETCH", "10")),
            poll_interval=float(self._get("CMDPIPE_POLL_INTERVAL", "0.4")),
        )

    def get_channel_config(self) -> ChannelConfig:
        """Get rendezvous point configuration from environment variables."""
        return ChannelConfig(
            tmp_dir=self.get_tmp_dir(),
            accept_timeout=_optional_float(self._get("CMDPIPE_ACCEPT_TIMEOUT")),
            exit_timeout=_optional_float(self._get("CMDPIPE_EXIT_TIMEOUT")),
            strict=self._get("CMDPIPE_STRICT_CHANNELS", "false").lower() == "true",
        )

    def get_dispatch_config(self) -> DispatchConfig:
        """Get dispatcher configuration from environment variables."""
        return DispatchConfig(
            channels=self.get_channel_config(),
            env_spec=self._get("CMDPIPE_ENV", ""),
        )

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig(level=self._get("LOG_LEVEL", "INFO").upper())
