import asyncio
import signal
import sys
from typing import Optional

import click
from loguru import logger

from mq_relay.common.broker import BrokerClient, create_broker_client
from mq_relay.common.config import (
    RelaySettings,
    load_settings,
    read_environment,
    resolve_relays,
)
from mq_relay.common.metrics import start_metrics_server
from mq_relay.common.models import RelayConfig, RelayConfigSet
from mq_relay.forwarder.client import PostForwarder
from mq_relay.relay.manager import RelayManager
from mq_relay.relay.worker import RelayWorker


LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"

_app_config: Optional[RelaySettings] = None
_relays: Optional[RelayConfigSet] = None
_manager: Optional[RelayManager] = None


def get_app_config() -> RelaySettings:
    global _app_config
    if not _app_config:
        raise RuntimeError("Application config not initialized")
    return _app_config


def get_manager() -> RelayManager:
    global _manager
    if not _manager:
        raise RuntimeError("Relay manager not initialized")
    return _manager


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)


def build_manager(
    settings: RelaySettings,
    relays: RelayConfigSet,
    broker: Optional[BrokerClient] = None,
) -> RelayManager:
    broker = broker or create_broker_client(
        settings.rmq_addr_root, settings.rmq_exchange_name
    )
    forwarder = PostForwarder(timeout=settings.forward_timeout)

    def worker_factory(relay: RelayConfig) -> RelayWorker:
        return RelayWorker(
            relay=relay,
            broker=broker,
            forwarder=forwarder,
            shutdown_on_push=settings.shutdown_on_github_push,
        )

    return RelayManager(relays, worker_factory, retry_interval=settings.retry_interval)


def setup_app(config: RelaySettings, env_file: Optional[str] = ".env"):
    """Initialize the application with the given config."""
    global _app_config, _relays, _manager

    setup_logging(config.log_level)
    logger.info("github-mq-to-post-relay started")

    _relays = resolve_relays(config, read_environment(env_file))
    logger.info(f"Loaded {len(_relays)} relay configuration(s)")

    _manager = build_manager(config, _relays)
    _app_config = config


def handle_signal(sig) -> None:
    """Handle termination signals."""
    global _manager
    if _manager:
        logger.info(f"Received signal {sig}, shutting down...")
        _manager.stop()


async def run_relays():
    """Run every configured relay until the process is signalled."""
    config = get_app_config()
    manager = get_manager()

    if config.metrics.enabled:
        start_metrics_server(config.metrics.port, config.metrics.host)
        logger.info(f"Metrics server started on {config.metrics.host}:{config.metrics.port}")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    await manager.run()


@click.group()
def cli():
    """GitHub MQ to POST relay CLI"""
    pass


@cli.command("serve")
@click.option("--config", "-c", default=None, help="Path to YAML configuration file")
@click.option("--env-file", default=".env", show_default=True, help="Path to .env file")
def serve(config: Optional[str], env_file: str):
    """Start relaying broker messages to the target URLs."""
    try:
        settings = load_settings(config, env_file)
        setup_app(settings, env_file)
        asyncio.run(run_relays())
    except Exception as e:
        logger.error(f"Failed to start relay: {e}")
        sys.exit(1)


@cli.command("check")
@click.option("--config", "-c", default=None, help="Path to YAML configuration file")
@click.option("--env-file", default=".env", show_default=True, help="Path to .env file")
def check(config: Optional[str], env_file: str):
    """Resolve the relay configuration and print it without connecting."""
    try:
        settings = load_settings(config, env_file)
        relays = resolve_relays(settings, read_environment(env_file))
    except Exception as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    click.echo(f"exchange: {settings.rmq_exchange_name!r}")
    for relay in relays:
        click.echo(f"{relay.label} -> {relay.target_url}")


if __name__ == "__main__":
    cli()
