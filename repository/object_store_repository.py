# repository/object_store_repository.py
import time
from typing import Callable, List
from redis.asyncio import Redis
from core.entities import ObjectInfo
from repository.namespaces import BUCKETS, OBJECTS, OBJECT_INDEX
from util.errors import BucketNotFoundError, ObjectNotFoundError


class ObjectStoreRepository:
    """
    Redis-backed transient object store organised in buckets.

    Each object is a plain byte value; a per-bucket sorted set indexes keys by
    last-modified time so a bucket can be listed and swept without SCAN.
    Value and index entry are written in one MULTI/EXEC so readers never see
    one without the other.
    """

    def __init__(self, client: Redis, clock: Callable[[], float] = time.time) -> None:
        self._r = client
        self._clock = clock

    @staticmethod
    def _object_key(bucket: str, key: str) -> str:
        return f"{OBJECTS}:{bucket}:{key}"

    @staticmethod
    def _index_key(bucket: str) -> str:
        return f"{OBJECT_INDEX}:{bucket}"

    @staticmethod
    def _s(v: bytes | str) -> str:
        return v.decode("utf-8") if isinstance(v, (bytes, bytearray)) else str(v)

    async def ping(self) -> bool:
        return bool(await self._r.ping())

    # ---------------- Buckets ----------------

    async def bucket_exists(self, bucket: str) -> bool:
        return bool(await self._r.sismember(BUCKETS, bucket))

    async def make_bucket(self, bucket: str) -> bool:
        """Returns False when the bucket already existed."""
        return bool(await self._r.sadd(BUCKETS, bucket))

    async def remove_bucket(self, bucket: str) -> None:
        if await self._r.zcard(self._index_key(bucket)):
            raise ValueError(f"bucket {bucket} is not empty")
        await self._r.srem(BUCKETS, bucket)

    # ---------------- Objects ----------------

    async def put_object(self, bucket: str, key: str, data: bytes) -> int:
        """
        Store `data` under bucket/key, overwriting any previous value.
        Returns the number of bytes the store now holds for the object.
        """
        if not await self.bucket_exists(bucket):
            raise BucketNotFoundError(bucket)
        okey = self._object_key(bucket, key)
        async with self._r.pipeline(transaction=True) as pipe:
            pipe.set(okey, data)
            pipe.zadd(self._index_key(bucket), {key: self._clock()})
            pipe.strlen(okey)
            _, _, written = await pipe.execute()
        return int(written)

    async def get_object(self, bucket: str, key: str) -> bytes:
        raw = await self._r.get(self._object_key(bucket, key))
        if raw is None:
            raise ObjectNotFoundError(bucket, key)
        return raw

    async def remove_object(self, bucket: str, key: str) -> bool:
        """Returns False when there was nothing to remove."""
        async with self._r.pipeline(transaction=True) as pipe:
            pipe.delete(self._object_key(bucket, key))
            pipe.zrem(self._index_key(bucket), key)
            deleted, _ = await pipe.execute()
        return bool(deleted)

    async def list_objects(self, bucket: str) -> List[ObjectInfo]:
        if not await self.bucket_exists(bucket):
            raise BucketNotFoundError(bucket)
        entries = await self._r.zrange(self._index_key(bucket), 0, -1, withscores=True)
        if not entries:
            return []
        async with self._r.pipeline(transaction=False) as pipe:
            for member, _ in entries:
                pipe.strlen(self._object_key(bucket, self._s(member)))
            sizes = await pipe.execute()
        return [
            ObjectInfo(key=self._s(member), size=int(size or 0), last_modified=float(ts))
            for (member, ts), size in zip(entries, sizes)
        ]
