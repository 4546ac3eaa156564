# service/stage_service.py
import asyncio
from typing import Optional
import logging
from core.consumer import SubscriptionConsumer
from core.entities import BrokerMessage
from repository.broker_repository import BrokerRepository
from repository.object_store_repository import ObjectStoreRepository
from util.constants import ACK_DEADLINE_SECONDS
from util.enums import ServiceRole

logger = logging.getLogger(__name__)


class StageService:
    """
    Lifecycle every pipeline stage exposes to the HTTP layer:
    start -> (ready / prestop probes) -> shutdown.
    """

    role: ServiceRole

    async def start(self) -> None:
        return None

    async def ready(self) -> bool:
        return True

    async def prestop(self) -> None:
        return None

    async def shutdown(self) -> None:
        return None


class WorkerService(StageService):
    """
    A stage driven by one subscription. Subclasses implement handle(); raising
    from it leaves the message for redelivery, returning acknowledges it.
    """

    def __init__(
        self,
        broker: BrokerRepository,
        store: ObjectStoreRepository,
        *,
        topic: str,
        subscription: str,
        consumer_name: str,
        concurrency: int = 4,
        batch_size: int = 10,
        block_ms: Optional[int] = 2000,
        ack_deadline_seconds: int = ACK_DEADLINE_SECONDS,
    ) -> None:
        self._broker = broker
        self._store = store
        self._topic = topic
        self._subscription = subscription
        self._ack_deadline = ack_deadline_seconds
        self.consumer = SubscriptionConsumer(
            broker,
            subscription,
            consumer_name,
            concurrency=concurrency,
            batch_size=batch_size,
            block_ms=block_ms,
        )
        self._runner: Optional[asyncio.Task] = None

    @property
    def subscription(self) -> str:
        return self._subscription

    async def setup(self) -> None:
        """Idempotently create the topics and subscription this stage needs."""
        await self._broker.ensure_topic(self._topic)
        await self._broker.ensure_subscription(
            self._subscription, self._topic, self._ack_deadline
        )

    async def start(self) -> None:
        await self.setup()
        self._runner = asyncio.create_task(
            self.consumer.run(self.handle), name=f"consumer:{self._subscription}"
        )

    async def handle(self, message: BrokerMessage) -> None:
        raise NotImplementedError

    async def poll(self) -> int:
        """Process one batch to completion. Returns how many messages were handled."""
        n = await self.consumer.pull_and_dispatch(self.handle)
        await self.consumer.drain()
        return n

    async def ready(self) -> bool:
        try:
            return await self._store.ping() and await self._broker.subscription_exists(
                self._subscription
            )
        except Exception as e:
            logger.warning("ready.check.error sub=%s err=%s", self._subscription, e)
            return False

    async def stop_consuming(self) -> None:
        self.consumer.stop()
        if self._runner is None:
            return
        try:
            await self._runner
        except Exception as e:
            logger.error("consumer.exit.error sub=%s err=%s", self._subscription, e)
        self._runner = None

    async def shutdown(self) -> None:
        await self.stop_consuming()
