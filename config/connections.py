# config/connections.py
from redis.asyncio import Redis, from_url


async def open_redis(url: str) -> Redis:
    """
    Open a Redis connection for the broker or the local object store.

    The caller owns the returned client and must pass it to close_redis().
    Repositories get raw bytes.
    """
    client = from_url(
        url,
        decode_responses=False,
        socket_keepalive=True,
        health_check_interval=30,
    )
    # Fail fast on startup if Redis is unreachable.
    await client.ping()
    return client


async def close_redis(client: Redis | None) -> None:
    if client is not None:
        await client.aclose()
