import asyncio

from mq_relay.common.broker import BrokerClient, Subscription
from mq_relay.common.models import Delivery


class FakeSubscription(Subscription):
    """In-memory subscription; tests push deliveries and simulate disconnects."""

    def __init__(self, queue_name="amq.gen-test"):
        self.queue_name = queue_name
        self.deliveries = asyncio.Queue()
        self.close_calls = 0
        self.close_reason = None
        self._disconnected = asyncio.Event()

    def push(self, body, routing_key="repo"):
        self.deliveries.put_nowait(Delivery(body=body, routing_key=routing_key))

    def disconnect(self, reason=None):
        self.close_reason = reason
        self._disconnected.set()

    async def get(self):
        return await self.deliveries.get()

    async def wait_closed(self):
        await self._disconnected.wait()
        return self.close_reason

    async def close(self):
        self.close_calls += 1


class FakeBroker(BrokerClient):
    """Hands out prepared subscriptions (or raises prepared errors) in order.

    Once the prepared outcomes run out, every subscribe gets a fresh idle
    subscription.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.subscribe_calls = []
        self.subscribe_times = []
        self.subscriptions = []

    async def subscribe(self, routing_key, client_name):
        self.subscribe_calls.append((routing_key, client_name))
        self.subscribe_times.append(asyncio.get_running_loop().time())

        outcome = self.outcomes.pop(0) if self.outcomes else FakeSubscription()
        if isinstance(outcome, BaseException):
            raise outcome
        self.subscriptions.append(outcome)
        return outcome

