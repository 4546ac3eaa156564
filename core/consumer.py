# core/consumer.py
import asyncio
from typing import Awaitable, Callable, Optional, Set
import logging
from redis.exceptions import RedisError
from core.entities import BrokerMessage
from repository.broker_repository import BrokerRepository
from util.errors import SubscriptionNotFoundError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[BrokerMessage], Awaitable[None]]


class SubscriptionConsumer:
    """
    Receive loop for one subscription.

    Flow:
    - Pull a batch (redeliveries first), dispatch each message to the handler
      as its own task, at most `concurrency` in flight.
    - Handler returns -> ack. Handler raises -> log and leave pending; the
      broker redelivers after the ack deadline.
    - stop() ends dispatch of new messages; in-flight handlers run to completion.
      Messages pulled after stop() stay pending.
    """

    def __init__(
        self,
        broker: BrokerRepository,
        subscription: str,
        consumer_name: str,
        *,
        concurrency: int = 4,
        batch_size: int = 10,
        block_ms: Optional[int] = 2000,
        error_pause_seconds: float = 1.0,
    ) -> None:
        self._broker = broker
        self._subscription = subscription
        self._consumer = consumer_name
        self._sem = asyncio.Semaphore(max(1, concurrency))
        self._batch = max(1, batch_size)
        self._block_ms = block_ms
        self._error_pause = error_pause_seconds
        self._stopping = asyncio.Event()
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def subscription(self) -> str:
        return self._subscription

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def stop(self) -> None:
        self._stopping.set()

    async def run(self, handler: MessageHandler) -> None:
        logger.info(
            "consumer.start sub=%s consumer=%s", self._subscription, self._consumer
        )
        try:
            while not self._stopping.is_set():
                try:
                    n = await self.pull_and_dispatch(handler)
                except (RedisError, SubscriptionNotFoundError) as e:
                    logger.error(
                        "consumer.pull.error sub=%s err=%s", self._subscription, e
                    )
                    await self._pause(self._error_pause)
                    continue
                if n == 0 and not self._block_ms:
                    await self._pause(0.1)
        finally:
            await self.drain()
            logger.info("consumer.stopped sub=%s", self._subscription)

    async def pull_and_dispatch(self, handler: MessageHandler) -> int:
        """
        Pull one batch and start a handler task per message. Returns the number
        of messages dispatched.
        """
        messages = await self._broker.pull(
            self._subscription,
            self._consumer,
            count=self._batch,
            block_ms=self._block_ms,
        )
        dispatched = 0
        for message in messages:
            if self._stopping.is_set():
                logger.info(
                    "consumer.stop.undispatched sub=%s id=%s", self._subscription, message.id
                )
                continue
            await self._sem.acquire()
            task = asyncio.create_task(self._handle(handler, message))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            dispatched += 1
        return dispatched

    async def drain(self) -> None:
        """Wait for every in-flight handler to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _handle(self, handler: MessageHandler, message: BrokerMessage) -> None:
        try:
            try:
                await handler(message)
            except Exception as e:
                logger.error(
                    "consumer.handler.error sub=%s id=%s redelivered=%s err=%s: %s",
                    self._subscription,
                    message.id,
                    message.redelivered,
                    type(e).__name__,
                    e,
                )
                return
            try:
                await self._broker.ack(message)
            except RedisError as e:
                # Unacked -> redelivered; handlers are idempotent
                logger.error(
                    "consumer.ack.error sub=%s id=%s err=%s", self._subscription, message.id, e
                )
        finally:
            self._sem.release()

    async def _pause(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
