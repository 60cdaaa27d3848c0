"""
Redis utility abstractions for caching operations
"""

import logging
from typing import Optional, Dict, Any

import redis.asyncio as redis
import orjson
from redis.exceptions import RedisError, ConnectionError

from .config import get_redis_config, RedisConfig

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Centralized Redis cache manager with connection pooling,
    serialization utilities, and common caching patterns.

    A disabled manager (``CACHE_ENABLED=false``) answers every lookup with
    a miss and every write with ``False``.
    """

    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[redis.Redis] = None):
        self.config = config or get_redis_config()
        self._pool: Optional[redis.ConnectionPool] = None
        self._client: Optional[redis.Redis] = client
        self._initialized = False

    @property
    def enabled(self) -> bool:
        return self.config.enabled or self._client is not None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client"""
        if self._initialized or not self.enabled:
            return

        if self._client is not None:
            self._initialized = True
            return

        logger.info(f"Initializing Redis connection to {self.config.host}:{self.config.port}")

        try:
            pool_kwargs = {
                "host": self.config.host,
                "port": self.config.port,
                "db": self.config.db,
                "max_connections": self.config.max_connections,
                "socket_timeout": self.config.socket_timeout,
                "socket_connect_timeout": self.config.socket_connect_timeout,
                "decode_responses": self.config.decode_responses,
                "retry_on_timeout": True,
                "retry_on_error": [ConnectionError],
            }

            if self.config.password:
                pool_kwargs["password"] = self.config.password

            self._pool = redis.ConnectionPool(**pool_kwargs)
            self._client = redis.Redis(connection_pool=self._pool)

            # Test connection
            await self._client.ping()
            logger.info("Redis connection established successfully")

            self._initialized = True

        except Exception as e:
            logger.error(f"Failed to initialize Redis: {e}")
            raise

    async def cleanup(self) -> None:
        """Cleanup Redis connections"""
        if self._pool:
            await self._pool.disconnect()
            logger.info("Redis connections closed")
        self._initialized = False

    async def health_check(self) -> Dict[str, Any]:
        """Perform Redis health check"""
        if not self.enabled:
            return {"status": "disabled"}

        try:
            if not self._initialized:
                return {"status": "error", "message": "Redis not initialized"}

            pong = await self._client.ping()
            if not pong:
                return {"status": "unhealthy", "message": "Ping failed"}

            return {"status": "healthy"}

        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    # Serialization utilities
    def serialize(self, data: Any) -> bytes:
        """Serialize data using orjson for performance"""
        try:
            return orjson.dumps(data)
        except Exception as e:
            logger.error(f"Serialization error: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        """Deserialize data using orjson"""
        try:
            if data is None:
                return None
            return orjson.loads(data)
        except Exception as e:
            logger.error(f"Deserialization error: {e}")
            raise

    # Basic cache operations
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache with automatic deserialization"""
        if not self._initialized:
            return None
        try:
            raw_data = await self._client.get(key)
            return self.deserialize(raw_data) if raw_data else None
        except RedisError as e:
            logger.warning(f"Redis get failed for key {key}: {e}")
            return None
        except orjson.JSONDecodeError as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None
    ) -> bool:
        """Set value in cache with automatic serialization"""
        if not self._initialized:
            return False
        try:
            serialized_value = self.serialize(value)
            ttl = ttl_seconds or self.config.default_ttl_seconds

            await self._client.setex(key, ttl, serialized_value)
            return True
        except RedisError as e:
            logger.warning(f"Redis set failed for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache"""
        if not self._initialized:
            return False
        try:
            result = await self._client.delete(key)
            return result > 0
        except RedisError as e:
            logger.warning(f"Redis delete failed for key {key}: {e}")
            return False


class CacheKeyBuilder:
    """Utility class for building consistent cache keys"""

    @staticmethod
    def patient_key(patient_id: str) -> str:
        """Generate cache key for a patient profile"""
        return f"patient:{patient_id}"

    @staticmethod
    def doctor_patients_key(doctor_id: str) -> str:
        """Generate cache key for a doctor's patient list"""
        return f"doctor:{doctor_id}:patients"
