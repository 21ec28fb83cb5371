"""
Redis-backed geocode cache.

Addresses are normalised (trimmed, lower-cased) and keyed per country.
The cache is an optimisation only: Redis errors are logged and treated as
a miss so a cache outage never fails a calculation.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from truckcheck.domain.entities import GeoPoint

logger = logging.getLogger(__name__)


class GeocodeCache:
    def __init__(self, client: aioredis.Redis, ttl_seconds: int = 86_400):
        self.redis = client
        self.ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 86_400) -> "GeocodeCache":
        """Cache backed by a connection pool on *url*."""
        pool = aioredis.ConnectionPool.from_url(url, decode_responses=True)
        return cls(aioredis.Redis(connection_pool=pool), ttl_seconds)

    async def close(self) -> None:
        await self.redis.aclose()

    @staticmethod
    def key(country: str, address: str) -> str:
        return f"geocode:{country.lower()}:{' '.join(address.lower().split())}"

    async def get(self, country: str, address: str) -> Optional[GeoPoint]:
        try:
            raw = await self.redis.get(self.key(country, address))
        except RedisError:
            logger.warning("Geocode cache read failed", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return GeoPoint(lat=data["lat"], lng=data["lng"], place_name=data["placeName"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding corrupt geocode cache entry for %r", address)
            return None

    async def set(self, country: str, address: str, point: GeoPoint) -> None:
        payload = json.dumps(
            {"lat": point.lat, "lng": point.lng, "placeName": point.place_name}
        )
        try:
            await self.redis.set(self.key(country, address), payload, ex=self.ttl)
        except RedisError:
            logger.warning("Geocode cache write failed", exc_info=True)
