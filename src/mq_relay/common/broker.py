import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import aio_pika
from loguru import logger

from mq_relay.common.models import Delivery


class BrokerError(Exception):
    pass


class ConnectionClosed(BrokerError):
    """The broker connection closed while a relay was consuming."""


class Subscription(ABC):
    """A bound, consuming queue. Closing it releases the channel and connection."""

    queue_name: str = ""

    @abstractmethod
    async def get(self) -> Delivery:
        pass

    @abstractmethod
    async def wait_closed(self) -> Optional[BaseException]:
        """Wait for the broker connection to close and return the close reason."""

    @abstractmethod
    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class BrokerClient(ABC):
    @abstractmethod
    async def subscribe(self, routing_key: str, client_name: str) -> Subscription:
        pass


class AMQPSubscription(Subscription):
    def __init__(self, connection, routing_key: str):
        self.connection = connection
        self.routing_key = routing_key
        self.channel = None
        self.queue = None
        self.queue_name = ""
        self.consumer_tag: Optional[str] = None

        self._deliveries: asyncio.Queue = asyncio.Queue()
        self._closed: asyncio.Future = asyncio.get_running_loop().create_future()
        self._released = False

        connection.close_callbacks.add(self._on_connection_closed)

    def _on_connection_closed(self, sender, exc: Optional[BaseException] = None) -> None:
        if not self._closed.done():
            self._closed.set_result(exc)

    async def _on_message(self, message) -> None:
        self._deliveries.put_nowait(
            Delivery(body=message.body, routing_key=message.routing_key or self.routing_key)
        )

    async def setup(self, exchange_name: str) -> None:
        self.channel = await self.connection.channel(publisher_confirms=True)

        # Server-named, exclusive and auto-deleted: the queue lives only as
        # long as this subscription.
        self.queue = await self.channel.declare_queue(
            "", durable=False, exclusive=True, auto_delete=True
        )
        self.queue_name = self.queue.name

        await self.queue.bind(exchange_name, routing_key=self.routing_key)
        self.consumer_tag = await self.queue.consume(self._on_message, no_ack=True)

    async def get(self) -> Delivery:
        return await self._deliveries.get()

    async def wait_closed(self) -> Optional[BaseException]:
        return await asyncio.shield(self._closed)

    async def close(self) -> None:
        if self._released:
            return
        self._released = True

        if self.channel is not None:
            try:
                await self.channel.close()
            except Exception as e:
                logger.warning(f"closing channel failed: {e}")

        try:
            await self.connection.close()
        except Exception as e:
            logger.warning(f"closing connection failed: {e}")


class AMQPBrokerClient(BrokerClient):
    def __init__(self, url: str, exchange_name: str):
        self.url = url
        self.exchange_name = exchange_name

    async def subscribe(self, routing_key: str, client_name: str) -> Subscription:
        connection = await aio_pika.connect(
            self.url, client_properties={"connection_name": client_name}
        )

        subscription = AMQPSubscription(connection, routing_key)
        try:
            await subscription.setup(self.exchange_name)
        except BaseException:
            await subscription.close()
            raise

        logger.debug(
            f"Bound queue {subscription.queue_name} to exchange "
            f"'{self.exchange_name}' with routing key {routing_key}"
        )
        return subscription


def create_broker_client(url: str, exchange_name: str) -> BrokerClient:
    if not url:
        raise ValueError("Broker address is required")
    return AMQPBrokerClient(url, exchange_name)
