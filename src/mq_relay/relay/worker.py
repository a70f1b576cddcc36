import asyncio
from typing import Optional

from loguru import logger

from mq_relay.common.broker import BrokerClient, ConnectionClosed
from mq_relay.common.metrics import metrics
from mq_relay.common.models import Delivery, RelayConfig
from mq_relay.forwarder.client import PostForwarder
from mq_relay.relay.signals import ShutdownSignal


CLIENT_NAME_PREFIX = "github-mq-to-post-relay"


class RelayWorker:
    """Consume one routing key and forward every message to the target URL."""

    def __init__(
        self,
        relay: RelayConfig,
        broker: BrokerClient,
        forwarder: PostForwarder,
        shutdown_on_push: bool = False,
        shutdown: Optional[ShutdownSignal] = None,
    ):
        self.relay = relay
        self.broker = broker
        self.forwarder = forwarder
        self.shutdown_on_push = shutdown_on_push
        self.shutdown = shutdown or ShutdownSignal()

    @property
    def client_name(self) -> str:
        return f"{CLIENT_NAME_PREFIX}:{self.relay.routing_key}"

    async def handle_delivery(self, delivery: Delivery) -> None:
        label = self.relay.label
        metrics.deliveries_total.labels(relay=self.relay.metric_label).inc()
        logger.debug(
            f"{label} Received {len(delivery.body)} bytes on {delivery.routing_key} "
            f"at {delivery.received_at.isoformat()}"
        )

        if self.shutdown_on_push:
            self.shutdown.request("push from github")
        else:
            logger.info(
                f"{label} Push from GitHub detected, but SHUTDOWN_ON_GITHUB_PUSH "
                "is not enabled. Ignored."
            )

        await self.forwarder.forward(delivery.body, self.relay)

    async def run(self) -> None:
        """Consume until the connection closes or a shutdown is requested.

        Returns normally only on shutdown. Setup errors propagate unchanged and
        a broker disconnect raises ``ConnectionClosed``.
        """
        label = self.relay.label
        subscription = await self.broker.subscribe(self.relay.routing_key, self.client_name)

        async with subscription:
            logger.info(f"{label} Listening GitHub push from queue {subscription.queue_name}")
            metrics.up.labels(relay=self.relay.metric_label).set(1)

            shutdown_task = asyncio.ensure_future(self.shutdown.wait())
            closed_task = asyncio.ensure_future(subscription.wait_closed())
            delivery_task = None
            try:
                while True:
                    if self.shutdown.is_requested:
                        logger.info(f"{label} Shutdown requested: {self.shutdown.reason}")
                        return

                    if delivery_task is None:
                        delivery_task = asyncio.ensure_future(subscription.get())

                    done, _ = await asyncio.wait(
                        {delivery_task, shutdown_task, closed_task},
                        return_when=asyncio.FIRST_COMPLETED,
                    )

                    if shutdown_task in done:
                        logger.info(f"{label} Shutdown requested: {shutdown_task.result()}")
                        return

                    if closed_task in done:
                        reason = closed_task.result()
                        raise ConnectionClosed(
                            f"connection closed: {reason}"
                        ) from reason

                    delivery = delivery_task.result()
                    delivery_task = None
                    await self.handle_delivery(delivery)
            finally:
                metrics.up.labels(relay=self.relay.metric_label).set(0)
                for task in (delivery_task, shutdown_task, closed_task):
                    if task is not None and not task.done():
                        task.cancel()
