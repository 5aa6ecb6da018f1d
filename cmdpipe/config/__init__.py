"""
Config Module - Black Box Interface

Purpose: Process configuration for both the send and receive roles
Interface: EnvConfigProvider, ConfigProvider, *Config dataclasses
Hidden: Environment variable names, defaults, parsing

Settings are handed to Dispatcher/Executor constructors, so independent
instances can run side by side against isolated broker namespaces.
"""

from .provider import (
    BrokerConfig,
    ChannelConfig,
    ConfigProvider,
    DispatchConfig,
    EnvConfigProvider,
    LoggingConfig,
)

__all__ = [
    "BrokerConfig",
    "ChannelConfig",
    "ConfigProvider",
    "DispatchConfig",
    "EnvConfigProvider",
    "LoggingConfig",
]
