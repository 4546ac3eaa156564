"""
Receiver: size verification, publish-after-write ordering, the retention sweep
and pre-stop cleanup.
"""
from __future__ import annotations

import io

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.datastructures import UploadFile

from repository.object_store_repository import ObjectStoreRepository
from service.receiver_service import ReceiverService
from util.errors import UploadError

pytestmark = pytest.mark.anyio


def _upload(name: str, data: bytes, size: int | None = None) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data), size=len(data) if size is None else size, filename=name
    )


class FailingStore(ObjectStoreRepository):
    async def put_object(self, bucket: str, key: str, data: bytes) -> int:
        raise RedisConnectionError("store unreachable")


@pytest.fixture
async def receiver(store, broker, clock):
    svc = ReceiverService(store, broker, bucket="bucket", topic="images", clock=clock)
    await svc.start()
    await broker.ensure_subscription("observer", "images")
    yield svc
    await svc.shutdown()


async def test_upload_stores_declared_size_and_publishes(receiver, store, broker):
    name = await receiver.receive_upload(_upload("cat1.jpg", b"\xff" * 200))

    assert name == "cat1.jpg"
    assert len(await store.get_object("bucket", "cat1.jpg")) == 200
    [msg] = await broker.pull("observer", "test")
    assert msg.data == b"bucket/cat1.jpg"


async def test_size_mismatch_is_an_error_and_publishes_nothing(receiver, broker):
    with pytest.raises(UploadError) as exc:
        await receiver.receive_upload(_upload("cat1.jpg", b"\xff" * 200, size=250))

    assert exc.value.status_code == 500
    assert "File upload incomplete" in str(exc.value)
    assert "wrote 200 wanted 250" in str(exc.value)
    assert broker.published == []


async def test_store_write_failure_never_attempts_publish(redis_client, broker, clock):
    await broker.ensure_topic("images")
    failing = FailingStore(redis_client, clock=clock)
    await failing.make_bucket("bucket")
    svc = ReceiverService(failing, broker, bucket="bucket", topic="images", clock=clock)

    with pytest.raises(UploadError) as exc:
        await svc.receive_upload(_upload("cat1.jpg", b"x" * 10))

    assert str(exc.value).startswith("File upload failed")
    assert broker.published == []


async def test_publish_failure_is_reported_and_object_is_kept(store, broker, clock):
    # Topic never created -> publish fails
    await store.make_bucket("bucket")
    svc = ReceiverService(store, broker, bucket="bucket", topic="images", clock=clock)

    with pytest.raises(UploadError) as exc:
        await svc.receive_upload(_upload("cat1.jpg", b"x" * 10))

    assert "Received notification failed for topic images" in str(exc.value)
    assert await store.get_object("bucket", "cat1.jpg") == b"x" * 10


@pytest.mark.parametrize("name", ["", "a/b.jpg", "..", "cat\x001.jpg"])
async def test_unusable_filenames_are_rejected(receiver, broker, name):
    with pytest.raises(UploadError):
        await receiver.receive_upload(_upload(name, b"x"))
    assert broker.published == []


async def test_sweep_removes_only_objects_past_retention(receiver, store, clock):
    t0 = clock.now
    clock.now = t0 - 6 * 60
    await store.put_object("bucket", "old.jpg", b"o")
    clock.now = t0 - 4 * 60
    await store.put_object("bucket", "fresh.jpg", b"f")
    clock.now = t0

    removed = await receiver.purge_expired()

    assert removed == 1
    assert [o.key for o in await store.list_objects("bucket")] == ["fresh.jpg"]


async def test_sweep_ignores_pipeline_progress(receiver, store, clock):
    await receiver.receive_upload(_upload("never-labeled.jpg", b"x"))
    clock.advance(5 * 60 + 1)

    assert await receiver.purge_expired() == 1
    assert await store.list_objects("bucket") == []


async def test_ready_and_prestop(receiver, store):
    await receiver.receive_upload(_upload("cat1.jpg", b"x"))
    assert await receiver.ready() is True

    await receiver.prestop()

    assert not await store.bucket_exists("bucket")
    assert await receiver.ready() is False
    # A second pre-stop only logs
    await receiver.prestop()
