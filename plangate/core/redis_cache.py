import json
import logging
from typing import Optional, Dict, Any
import redis
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from plangate.core.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis-backed cache for subscription payloads"""

    def __init__(self, redis_url: Optional[str] = None, password: Optional[str] = None):
        """Initialize Redis cache (lazy connection)"""
        self._redis_url = redis_url or settings.redis_url
        self._password = password if password is not None else settings.redis_password
        self._client: Optional[redis.Redis] = None
        self._connected = False

    def _ensure_connected(self):
        """Ensure Redis connection is established (lazy connection)"""
        if self._connected and self._client is not None:
            try:
                self._client.ping()
                return
            except (RedisError, AttributeError):
                # Connection lost, reconnect
                self._connected = False
                self._client = None

        self._connect()

    def _connect(self):
        """Connect to Redis server"""
        client_kwargs = {
            'decode_responses': False,
            'socket_connect_timeout': 2,
            'socket_timeout': 2,
            'retry_on_timeout': False,
        }
        # Settings password takes precedence over the one embedded in the URL
        if self._password:
            client_kwargs['password'] = self._password

        try:
            self._client = redis.from_url(self._redis_url, **client_kwargs)
            self._client.ping()
            self._connected = True
            logger.info("RedisCache: Connected to Redis")
        except RedisConnectionError as e:
            logger.error(f"RedisCache: Failed to connect to Redis - {e}")
            self._connected = False
            self._client = None
        except (RedisError, ValueError) as e:
            error_msg = str(e)
            if 'auth' in error_msg.lower() or 'password' in error_msg.lower():
                logger.error(f"RedisCache: Authentication failed - {error_msg}. Ensure REDIS_PASSWORD is set correctly.")
            else:
                logger.warning(f"RedisCache: Connection test failed - {error_msg}")
            self._connected = False
            self._client = None

    def get(self, key: str) -> Optional[Any]:
        """Get cached JSON value, None on miss or when Redis is unavailable"""
        self._ensure_connected()
        if self._client is None:
            logger.warning(f"RedisCache: Cannot get key {key} - Redis not available")
            return None

        try:
            data = self._client.get(key)
            if data is None:
                logger.debug(f"Cache miss: {key}")
                return None

            try:
                decoded = json.loads(data.decode('utf-8'))
                logger.debug(f"Cache hit: {key}")
                return decoded
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"RedisCache: Failed to decode value for key {key}: {e}")
                # Delete corrupted entry
                self._client.delete(key)
                return None
        except RedisError as e:
            logger.error(f"RedisCache: Error getting key {key}: {e}")
            self._connected = False
            return None

    def set(self, key: str, value: Dict | list | None, ttl_minutes: int):
        """Set cache value with TTL in minutes"""
        self._ensure_connected()
        if self._client is None:
            logger.warning(f"RedisCache: Cannot set key {key} - Redis not available")
            return

        try:
            serialized = json.dumps(value).encode('utf-8')
            self._client.setex(key, ttl_minutes * 60, serialized)
            logger.debug(f"Cache set: {key}, TTL: {ttl_minutes} minutes")
        except (RedisError, TypeError) as e:
            logger.error(f"RedisCache: Error setting key {key}: {e}")
            if isinstance(e, RedisError):
                self._connected = False

    def delete(self, key: str):
        """Delete cache entry"""
        self._ensure_connected()
        if self._client is None:
            logger.warning(f"RedisCache: Cannot delete key {key} - Redis not available")
            return

        try:
            self._client.delete(key)
            logger.debug(f"Cache deleted: {key}")
        except RedisError as e:
            logger.error(f"RedisCache: Error deleting key {key}: {e}")
            self._connected = False

    def ping(self) -> bool:
        """Check if Redis connection is alive"""
        self._ensure_connected()
        if self._client is None:
            return False
        try:
            self._client.ping()
            return True
        except RedisError:
            return False
