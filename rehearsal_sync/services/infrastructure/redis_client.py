# rehearsal_sync/services/infrastructure/redis_client.py
from typing import Protocol

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from rehearsal_sync.config import settings
from rehearsal_sync.errors import SyncStateError
from rehearsal_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """Whole-blob key/value storage for persisted sync state."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisKeyValueStore:
    """Pooled Redis backend for sync settings, mappings and tracking tables"""

    def __init__(self, redis_url: str | None = None, max_connections: int = 10):
        self.redis_url = redis_url or settings.REDIS_URL
        self.max_connections = max_connections
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            logger.info("Attempting Redis connection", url_preview=self.redis_url[:30] + "...")

            self.pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Redis key-value store initialized", max_connections=self.max_connections)

        except Exception as e:
            logger.error("Failed to initialize Redis key-value store", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis key-value store closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def get(self, key: str) -> str | None:
        try:
            await self._ensure_initialized()
            result = await self.client.get(key)
            return result if result else None
        except Exception as e:
            logger.error("Redis GET failed", key=key, error=str(e))
            raise SyncStateError(f"Failed to read {key}", key=key) from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self._ensure_initialized()
            await self.client.set(key, value)
        except Exception as e:
            logger.error("Redis SET failed", key=key, error=str(e))
            raise SyncStateError(f"Failed to write {key}", key=key) from e

    async def delete(self, key: str) -> None:
        try:
            await self._ensure_initialized()
            await self.client.delete(key)
        except Exception as e:
            logger.error("Redis DELETE failed", key=key, error=str(e))
            raise SyncStateError(f"Failed to delete {key}", key=key) from e
