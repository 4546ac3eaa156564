# repository/broker_repository.py
import logging
import time
from typing import Callable, Final, List, Optional
from redis.asyncio import Redis
from redis.exceptions import ResponseError
from core.entities import BrokerMessage
from model.subscription import SubscriptionConfig
from repository.namespaces import SUBSCRIPTIONS, TOPIC_STREAMS, TOPICS
from util.constants import ACK_DEADLINE_SECONDS
from util.errors import SubscriptionNotFoundError, TopicNotFoundError

DATA_FIELD: Final[bytes] = b"data"

logger = logging.getLogger(__name__)


class BrokerRepository:
    """
    Publish/subscribe broker on Redis Streams.

    Flow:
    - A topic is a stream plus an entry in the project's topic registry.
    - A subscription is a consumer group on the topic's stream plus a registry
      entry recording its topic and ack deadline. Every subscription sees every
      message published after it was created.
    - pull() first reclaims entries that have been pending longer than the ack
      deadline (redelivery), then reads new entries.
    - ack() removes an entry from the subscription's pending list. Unacked
      entries are redelivered; nothing else retries.
    """

    def __init__(
        self,
        client: Redis,
        project_id: str,
        *,
        stream_maxlen: Optional[int] = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._r = client
        self._project = project_id
        self._maxlen = stream_maxlen
        self._clock = clock

    def _topics_key(self) -> str:
        return f"{TOPICS}:{self._project}"

    def _subscriptions_key(self) -> str:
        return f"{SUBSCRIPTIONS}:{self._project}"

    def _stream_key(self, topic: str) -> str:
        return f"{TOPIC_STREAMS}:{self._project}:{topic}"

    @staticmethod
    def _s(v: bytes | str) -> str:
        return v.decode("utf-8") if isinstance(v, (bytes, bytearray)) else str(v)

    async def ping(self) -> bool:
        return bool(await self._r.ping())

    # ---------------- Topics ----------------

    async def topic_exists(self, topic: str) -> bool:
        return bool(await self._r.sismember(self._topics_key(), topic))

    async def create_topic(self, topic: str) -> bool:
        """Returns False when another stage registered the topic first."""
        return bool(await self._r.sadd(self._topics_key(), topic))

    async def ensure_topic(self, topic: str) -> bool:
        """Check-exists, else create. Returns True only when this call created it."""
        if await self.topic_exists(topic):
            return False
        created = await self.create_topic(topic)
        if created:
            logger.info("broker.topic.created topic=%s", topic)
        return created

    # ---------------- Subscriptions ----------------

    async def get_subscription(self, name: str) -> Optional[SubscriptionConfig]:
        raw = await self._r.hget(self._subscriptions_key(), name)
        if raw is None:
            return None
        return SubscriptionConfig.model_validate_json(raw)

    async def subscription_exists(self, name: str) -> bool:
        return bool(await self._r.hexists(self._subscriptions_key(), name))

    async def create_subscription(
        self, name: str, topic: str, ack_deadline_seconds: int = ACK_DEADLINE_SECONDS
    ) -> SubscriptionConfig:
        if not await self.topic_exists(topic):
            raise TopicNotFoundError(topic)

        try:
            await self._r.xgroup_create(self._stream_key(topic), name, id="$", mkstream=True)
        except ResponseError as e:
            # Another instance created the group between our check and create
            if "BUSYGROUP" not in str(e):
                raise

        config = SubscriptionConfig(
            name=name,
            topic=topic,
            ack_deadline_seconds=ack_deadline_seconds,
            created_at=self._clock(),
        )
        stored = await self._r.hsetnx(
            self._subscriptions_key(), name, config.model_dump_json()
        )
        if not stored:
            existing = await self.get_subscription(name)
            if existing is not None:
                return existing
        logger.info(
            "broker.subscription.created sub=%s topic=%s ack_deadline=%ds",
            name,
            topic,
            ack_deadline_seconds,
        )
        return config

    async def ensure_subscription(
        self, name: str, topic: str, ack_deadline_seconds: int = ACK_DEADLINE_SECONDS
    ) -> SubscriptionConfig:
        """Check-exists, else create. Safe to call any number of times."""
        existing = await self.get_subscription(name)
        if existing is not None:
            if existing.topic != topic:
                logger.warning(
                    "broker.subscription.topic_mismatch sub=%s bound=%s requested=%s",
                    name,
                    existing.topic,
                    topic,
                )
            return existing
        return await self.create_subscription(name, topic, ack_deadline_seconds)

    async def delete_subscription(self, name: str) -> bool:
        """Returns False when the subscription did not exist."""
        config = await self.get_subscription(name)
        if config is None:
            return False
        await self._r.xgroup_destroy(self._stream_key(config.topic), name)
        await self._r.hdel(self._subscriptions_key(), name)
        logger.info("broker.subscription.deleted sub=%s topic=%s", name, config.topic)
        return True

    # ---------------- Messages ----------------

    async def publish(self, topic: str, data: bytes) -> str:
        """
        Append a message to the topic and return its broker-assigned id once
        Redis has accepted it.
        """
        if not await self.topic_exists(topic):
            raise TopicNotFoundError(topic)
        kwargs = {}
        if self._maxlen:
            kwargs = {"maxlen": self._maxlen, "approximate": True}
        message_id = await self._r.xadd(self._stream_key(topic), {DATA_FIELD: data}, **kwargs)
        return self._s(message_id)

    async def pull(
        self,
        subscription: str,
        consumer: str,
        *,
        count: int = 10,
        block_ms: Optional[int] = None,
    ) -> List[BrokerMessage]:
        """
        Deliver up to `count` messages to `consumer`: expired (redelivered)
        entries first, then new ones. `block_ms` falsy means do not block.
        """
        config = await self.get_subscription(subscription)
        if config is None:
            raise SubscriptionNotFoundError(subscription)
        stream = self._stream_key(config.topic)
        out: List[BrokerMessage] = []

        claimed = await self._r.xautoclaim(
            stream,
            subscription,
            consumer,
            min_idle_time=config.ack_deadline_seconds * 1000,
            start_id="0-0",
            count=count,
        )
        entries = claimed[1] if claimed and len(claimed) > 1 else []
        for message_id, fields in entries:
            if message_id is None:
                continue
            if fields is None:
                # Trimmed from the stream while pending; nothing left to deliver
                await self._r.xack(stream, subscription, message_id)
                continue
            out.append(self._message(config, message_id, fields, redelivered=True))

        remaining = count - len(out)
        if remaining <= 0:
            return out

        # Only block when there was nothing to redeliver
        block = block_ms if (block_ms and not out) else None
        resp = await self._r.xreadgroup(
            subscription, consumer, {stream: ">"}, count=remaining, block=block
        )
        for _stream, stream_entries in resp or []:
            for message_id, fields in stream_entries:
                out.append(self._message(config, message_id, fields or {}, redelivered=False))
        return out

    async def ack(self, message: BrokerMessage) -> bool:
        acked = await self._r.xack(
            self._stream_key(message.topic), message.subscription, message.id
        )
        return bool(acked)

    def _message(
        self,
        config: SubscriptionConfig,
        message_id: bytes | str,
        fields: dict,
        *,
        redelivered: bool,
    ) -> BrokerMessage:
        data = fields.get(DATA_FIELD)
        if data is None:
            data = fields.get(DATA_FIELD.decode(), b"")
        if isinstance(data, str):
            data = data.encode("utf-8")
        return BrokerMessage(
            id=self._s(message_id),
            topic=config.topic,
            subscription=config.name,
            data=data,
            redelivered=redelivered,
        )
