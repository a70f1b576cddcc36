import asyncio
from typing import Callable, List

from loguru import logger

from mq_relay.common.metrics import metrics
from mq_relay.common.models import RelayConfig, RelayConfigSet
from mq_relay.relay.worker import RelayWorker


DEFAULT_RETRY_INTERVAL = 60.0


class RelayManager:
    """Run one supervised relay worker per configuration entry.

    Each relay is restarted forever: after an error it waits ``retry_interval``
    seconds, after a requested shutdown it restarts immediately. Relays never
    wait on each other.
    """

    def __init__(
        self,
        relays: RelayConfigSet,
        worker_factory: Callable[[RelayConfig], RelayWorker],
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ):
        self.relays = relays
        self.worker_factory = worker_factory
        self.retry_interval = retry_interval
        self._tasks: List[asyncio.Task] = []

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def supervise(self, relay: RelayConfig) -> None:
        label = relay.label
        while True:
            logger.info(f"{label} Starting listener...")
            try:
                worker = self.worker_factory(relay)
                await worker.run()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                metrics.worker_restarts_total.labels(relay=relay.metric_label).inc()
                logger.error(
                    f"{label} Error '{e}' returned from relay worker. "
                    f"(Check github-org-webhook-center running!) "
                    f"Retry in {self.retry_interval} seconds..."
                )
                await asyncio.sleep(self.retry_interval)
            else:
                logger.info(f"{label} Listener stopped, restarting")

    async def run(self) -> None:
        """Start every relay and wait for them; returns only after ``stop``."""
        self._tasks = [
            asyncio.create_task(self.supervise(relay), name=f"relay-{relay.index}")
            for relay in self.relays
        ]
        logger.info(f"Started {len(self._tasks)} relay(s)")
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for relay, result in zip(self.relays, results):
            if isinstance(result, BaseException) and not isinstance(
                result, asyncio.CancelledError
            ):
                logger.error(f"{relay.label} Supervisor exited with error: {result!r}")
        logger.info("All relays stopped")

    def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
