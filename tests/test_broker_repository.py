"""
Broker on Redis Streams: idempotent topic/subscription setup, fan-out and
redelivery after the ack deadline.
"""
from __future__ import annotations

import anyio
import pytest

from repository.namespaces import SUBSCRIPTIONS
from util.errors import SubscriptionNotFoundError, TopicNotFoundError

pytestmark = pytest.mark.anyio


async def test_ensure_topic_is_idempotent(broker):
    assert await broker.ensure_topic("images") is True
    assert await broker.ensure_topic("images") is False
    assert await broker.topic_exists("images")


async def test_ensure_subscription_twice_leaves_exactly_one(broker, redis_client):
    await broker.ensure_topic("images")

    first = await broker.ensure_subscription("labeler", "images")
    second = await broker.ensure_subscription("labeler", "images")

    assert first == second
    assert first.ack_deadline_seconds == 60
    assert await redis_client.hlen(f"{SUBSCRIPTIONS}:test-project") == 1
    assert await broker.subscription_exists("labeler")


async def test_create_subscription_on_missing_topic_fails(broker):
    with pytest.raises(TopicNotFoundError):
        await broker.ensure_subscription("labeler", "nope")


async def test_publish_to_missing_topic_fails(broker):
    with pytest.raises(TopicNotFoundError):
        await broker.publish("nope", b"x")


async def test_every_subscription_receives_every_message(broker):
    await broker.ensure_topic("labeled")
    await broker.ensure_subscription("pod-a+cat", "labeled")
    await broker.ensure_subscription("pod-b+dog", "labeled")

    message_id = await broker.publish("labeled", b"payload")

    a = await broker.pull("pod-a+cat", "pod-a")
    b = await broker.pull("pod-b+dog", "pod-b")
    assert [m.id for m in a] == [message_id]
    assert [m.id for m in b] == [message_id]
    assert a[0].data == b"payload"
    assert a[0].topic == "labeled"
    assert a[0].redelivered is False


async def test_subscription_only_sees_messages_published_after_creation(broker):
    await broker.ensure_topic("images")
    await broker.publish("images", b"early")
    await broker.ensure_subscription("late", "images")
    await broker.publish("images", b"later")

    got = await broker.pull("late", "c1")
    assert [m.data for m in got] == [b"later"]


async def test_unacked_message_is_redelivered_after_ack_deadline(broker):
    await broker.ensure_topic("images")
    await broker.ensure_subscription("labeler", "images", ack_deadline_seconds=0)
    message_id = await broker.publish("images", b"bucket/cat1.jpg")

    first = await broker.pull("labeler", "c1")
    await anyio.sleep(0.01)
    again = await broker.pull("labeler", "c2")

    assert [m.id for m in first] == [message_id]
    assert [m.id for m in again] == [message_id]
    assert again[0].redelivered is True

    assert await broker.ack(again[0]) is True
    await anyio.sleep(0.01)
    assert await broker.pull("labeler", "c1") == []


async def test_unacked_message_waits_for_the_deadline(broker):
    await broker.ensure_topic("images")
    await broker.ensure_subscription("labeler", "images")
    await broker.publish("images", b"bucket/cat1.jpg")

    assert len(await broker.pull("labeler", "c1")) == 1
    # Default 60s deadline has not expired
    assert await broker.pull("labeler", "c1") == []


async def test_delete_subscription(broker):
    await broker.ensure_topic("labeled")
    await broker.ensure_subscription("pod-a+cat", "labeled")

    assert await broker.delete_subscription("pod-a+cat") is True
    assert await broker.delete_subscription("pod-a+cat") is False
    assert not await broker.subscription_exists("pod-a+cat")
    with pytest.raises(SubscriptionNotFoundError):
        await broker.pull("pod-a+cat", "pod-a")
