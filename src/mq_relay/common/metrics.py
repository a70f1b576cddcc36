from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server


class MetricsRegistry:
    def __init__(self, registry=None):
        # Use a provided registry or the default one
        self.registry = registry or REGISTRY

        # Worker metrics
        self.deliveries_total = Counter(
            "mq_relay_deliveries_total",
            "Total number of messages consumed from the broker",
            ["relay"],
            registry=self.registry,
        )
        self.worker_restarts_total = Counter(
            "mq_relay_worker_restarts_total",
            "Total number of relay worker restarts after an error",
            ["relay"],
            registry=self.registry,
        )
        self.up = Gauge(
            "mq_relay_up",
            "Whether the relay worker is subscribed to the broker",
            ["relay"],
            registry=self.registry,
        )

        # Forwarder metrics
        self.forward_total = Counter(
            "mq_relay_forward_total",
            "Total number of messages forwarded successfully",
            ["relay"],
            registry=self.registry,
        )
        self.forward_errors = Counter(
            "mq_relay_forward_errors",
            "Total number of errors forwarding messages",
            ["relay", "status_code"],
            registry=self.registry,
        )
        self.forward_latency = Histogram(
            "mq_relay_forward_seconds",
            "Time spent forwarding messages",
            ["relay"],
            registry=self.registry,
        )


# Global metrics registry
metrics = MetricsRegistry()


def start_metrics_server(port: int = 9090, host: str = "127.0.0.1"):
    """Start the Prometheus metrics server."""
    start_http_server(port, host)
