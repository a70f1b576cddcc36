"""Common utilities and models for the MQ to POST relay."""

from mq_relay.common.broker import (
    AMQPBrokerClient,
    AMQPSubscription,
    BrokerClient,
    BrokerError,
    ConnectionClosed,
    Subscription,
    create_broker_client,
)
from mq_relay.common.config import (
    ConfigurationError,
    MetricsConfig,
    RelaySettings,
    load_relay_configs,
    load_settings,
    read_environment,
    resolve_relays,
)
from mq_relay.common.metrics import MetricsRegistry, metrics, start_metrics_server
from mq_relay.common.models import Delivery, RelayConfig, RelayConfigSet

__all__ = [
    # Broker
    "AMQPBrokerClient",
    "AMQPSubscription",
    "BrokerClient",
    "BrokerError",
    "ConnectionClosed",
    "Subscription",
    "create_broker_client",
    # Config
    "ConfigurationError",
    "MetricsConfig",
    "RelaySettings",
    "load_relay_configs",
    "load_settings",
    "read_environment",
    "resolve_relays",
    # Metrics
    "MetricsRegistry",
    "metrics",
    "start_metrics_server",
    # Models
    "Delivery",
    "RelayConfig",
    "RelayConfigSet",
]
