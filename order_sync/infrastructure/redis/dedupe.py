from __future__ import annotations

import redis.asyncio as aioredis


class PurchaseDedupe:
    """One conversion per order id across retries and approved/paid pairs."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 24 * 3600) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    @staticmethod
    def key(order_id: str) -> str:
        return f"conversions:purchase:{order_id}"

    async def claim(self, order_id: str) -> bool:
        return bool(await self._redis.set(self.key(order_id), "1", nx=True, ex=self._ttl))

    async def release(self, order_id: str) -> None:
        await self._redis.delete(self.key(order_id))
