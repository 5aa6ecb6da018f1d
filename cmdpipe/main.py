#!/usr/bin/env python3
"""
cmdpipe - Main Entry Point

Thin orchestration layer:
1. Loads configuration
2. Opens the broker connection
3. Runs one Dispatcher invocation (send) or the Executor loop (receive)

All business logic is in the modules.
"""

import asyncio
import logging
import sys
from typing import Optional, Sequence

import click
from dotenv import load_dotenv

from cmdpipe.config import ConfigProvider, EnvConfigProvider
from cmdpipe.errors import PartialChannelSetError, TransportSetupError
from cmdpipe.logging_config import configure_logging
from cmdpipe.modules.broker import Broker, RedisBroker
from cmdpipe.modules.dispatcher import UNKNOWN_STATUS, Dispatcher
from cmdpipe.modules.executor import CommandExecutor

logger = logging.getLogger("cmdpipe.main")

SETUP_FAILURE_STATUS = 1


def build_broker(provider: ConfigProvider) -> Broker:
    """Create the broker client from configuration."""
    broker_config = provider.get_broker_config()
    return RedisBroker(broker_config.url, service=broker_config.service)


async def run_send(
    provider: ConfigProvider,
    name: str,
    params: Sequence[str],
    broker: Optional[Broker] = None,
) -> int:
    """Publish one command and relay this process's stdio against it."""
    broker = broker or build_broker(provider)
    async with broker:
        dispatcher = Dispatcher(broker, provider.get_dispatch_config())
        return await dispatcher.send(name, params)


async def run_receive(
    provider: ConfigProvider,
    name: str,
    broker: Optional[Broker] = None,
) -> None:
    """Serve the allowed command until the process is stopped."""
    broker = broker or build_broker(provider)
    async with broker:
        executor = CommandExecutor(
            name,
            channels=provider.get_channel_config(),
            broker_config=provider.get_broker_config(),
        )
        await executor.run(broker)


def exit_code(status: int) -> int:
    """Process exit code for a remote status; -1 becomes 255."""
    return status & 0xFF


@click.group()
def cli():
    """Run a predetermined command on a worker, streaming its stdio."""
    load_dotenv()


@cli.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("name")
@click.argument("params", nargs=-1, type=click.UNPROCESSED)
def send(name: str, params: Sequence[str]):
    """Run NAME on a worker with PARAMS and exit with its status."""
    provider = EnvConfigProvider()
    configure_logging(provider.get_logging_config().level, role="send")

    try:
        status = asyncio.run(run_send(provider, name, list(params)))
    except TransportSetupError as e:
        logger.error(f"Transport setup failed: {e}")
        sys.exit(SETUP_FAILURE_STATUS)
    except PartialChannelSetError as e:
        logger.error(f"Invocation could not be completed: {e}")
        status = UNKNOWN_STATUS

    sys.exit(exit_code(status))


@cli.command()
@click.argument("name")
def receive(name: str):
    """Serve NAME: run it for every descriptor on its queue."""
    provider = EnvConfigProvider()
    configure_logging(provider.get_logging_config().level, role="receive")

    try:
        asyncio.run(run_receive(provider, name))
    except KeyboardInterrupt:
        logger.info("Executor stopped by user")
        sys.exit(0)
    except TransportSetupError as e:
        logger.error(f"Transport setup failed: {e}")
        sys.exit(SETUP_FAILURE_STATUS)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
