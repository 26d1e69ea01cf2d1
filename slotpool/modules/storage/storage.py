import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger("slotpool.storage")


class StorageModule:
    """Black box storage abstraction."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        connection_url: Optional[str] = None,
    ):
        """
        Initialize storage with connection settings.

        Args:
            host: Redis hostname
            port: Redis port
            db: Redis database number
            password: Optional password, passed separately to avoid URL encoding issues
            connection_url: Full URL, takes precedence over host/port/db
        """
        self.url = connection_url or f"redis://{host}:{port}/{db}"
        self.password = password
        self._client: Optional[redis.Redis] = None

    @classmethod
    def from_config(cls, config) -> "StorageModule":
        """Build from a ConfigModule."""
        return cls(
            host=config.get("redis_host"),
            port=config.get("redis_port"),
            db=config.get("redis_db"),
            password=config.get("redis_password"),
        )

    async def connect(self) -> redis.Redis:
        """Get storage connection."""
        if not self._client:
            self._client = redis.from_url(
                self.url,
                password=self.password,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info(f"Redis client created for {self.url}")
        return self._client

    async def disconnect(self):
        """Close storage connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        """
        Liveness check against the store.

        Returns:
            True if Redis answered, False otherwise
        """
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
