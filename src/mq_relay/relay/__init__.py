"""Relay workers and their supervisor."""

from mq_relay.relay.app import (
    build_manager,
    cli,
    get_app_config,
    get_manager,
    run_relays,
    setup_app,
)
from mq_relay.relay.manager import RelayManager
from mq_relay.relay.signals import ShutdownSignal
from mq_relay.relay.worker import RelayWorker

__all__ = [
    "build_manager",
    "cli",
    "get_app_config",
    "get_manager",
    "run_relays",
    "setup_app",
    "RelayManager",
    "RelayWorker",
    "ShutdownSignal",
]
