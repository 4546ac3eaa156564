from __future__ import annotations

import pytest

from util.errors import BucketNotFoundError, ObjectNotFoundError

pytestmark = pytest.mark.anyio


async def test_put_get_and_list(store, clock):
    await store.make_bucket("uploads")

    written = await store.put_object("uploads", "cat1.jpg", b"\x01" * 200)

    assert written == 200
    assert await store.get_object("uploads", "cat1.jpg") == b"\x01" * 200
    [info] = await store.list_objects("uploads")
    assert info.key == "cat1.jpg"
    assert info.size == 200
    assert info.last_modified == clock.now


async def test_overwrite_refreshes_last_modified(store, clock):
    await store.make_bucket("uploads")
    await store.put_object("uploads", "a.jpg", b"one")
    clock.advance(30)
    await store.put_object("uploads", "a.jpg", b"three")

    [info] = await store.list_objects("uploads")
    assert info.size == 5
    assert info.last_modified == clock.now


async def test_put_into_missing_bucket_fails(store):
    with pytest.raises(BucketNotFoundError):
        await store.put_object("nope", "a.jpg", b"x")


async def test_get_missing_object_fails(store):
    await store.make_bucket("uploads")
    with pytest.raises(ObjectNotFoundError):
        await store.get_object("uploads", "ghost.jpg")


async def test_remove_is_idempotent(store):
    await store.make_bucket("uploads")
    await store.put_object("uploads", "a.jpg", b"x")

    assert await store.remove_object("uploads", "a.jpg") is True
    assert await store.remove_object("uploads", "a.jpg") is False
    assert await store.list_objects("uploads") == []


async def test_bucket_lifecycle(store):
    assert await store.make_bucket("uploads") is True
    assert await store.make_bucket("uploads") is False
    await store.put_object("uploads", "a.jpg", b"x")

    with pytest.raises(ValueError):
        await store.remove_bucket("uploads")

    await store.remove_object("uploads", "a.jpg")
    await store.remove_bucket("uploads")
    assert not await store.bucket_exists("uploads")
