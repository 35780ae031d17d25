"""Redis client with connection pooling and graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import NoScriptError, RedisError

logger = logging.getLogger(__name__)

# Lua script for fixed window rate limiting
# Atomic: increments counter and sets expiry only on first request
FIXED_WINDOW_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])

local count = redis.call('INCR', key)
if count == 1 then
    redis.call('EXPIRE', key, window)
end
local ttl = redis.call('TTL', key)

if count <= limit then
    return {1, limit - count, ttl, 0}  -- allowed, remaining, ttl, no retry
else
    return {0, 0, ttl, ttl}  -- denied, 0 remaining, ttl, retry_after=ttl
end
"""


class RedisClient:
    """
    Async Redis client with connection pooling and graceful fallback.

    Every operation returns a safe default (None, False, empty set) when Redis is
    disabled, unreachable, or times out. Callers treat that as a cache miss or a
    skipped write; a cache problem never fails a request.
    """

    def __init__(
        self,
        url: str,
        enabled: bool = True,
        pool_size: int = 20,
        socket_timeout: float | None = 2.0,
    ) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._socket_timeout = socket_timeout
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._fixed_window_sha: str | None = None

    async def connect(self) -> None:
        """Initialize connection pool and load Lua scripts."""
        if not self._enabled:
            logger.info("Redis disabled by configuration")
            return
        try:
            self._pool = ConnectionPool.from_url(
                self._url,
                max_connections=self._pool_size,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
            self._client = Redis(connection_pool=self._pool)
            # Verify connection
            await self._client.ping()
            await self._load_scripts()
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning("Redis connection failed: %s", e)
            self._client = None
            self._pool = None

    async def _load_scripts(self) -> None:
        """Load Lua scripts and store their SHAs for evalsha calls."""
        if not self._client:
            return
        try:
            self._fixed_window_sha = await self._client.script_load(FIXED_WINDOW_SCRIPT)
            logger.info("Redis Lua scripts loaded")
        except RedisError as e:
            logger.warning("Failed to load Lua scripts: %s", e)

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def get(self, key: str) -> bytes | None:
        """Get value, returns None if Redis unavailable."""
        if not self._client:
            return None
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("Redis GET failed: %s", e)
            return None

    async def getdel(self, key: str) -> bytes | None:
        """
        Get a value and delete its key in one step, returns None if Redis unavailable.

        At most one caller receives the value of a given key.
        """
        if not self._client:
            return None
        try:
            return await self._client.getdel(key)
        except RedisError as e:
            logger.warning("Redis GETDEL failed: %s", e)
            return None

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        """Set value with expiry, returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.setex(key, seconds, value)
            return True
        except RedisError as e:
            logger.warning("Redis SETEX failed: %s", e)
            return False

    async def delete(self, *keys: str) -> bool:
        """Delete key(s), returns False if Redis unavailable."""
        if not self._client:
            return False
        if not keys:
            return True
        try:
            await self._client.delete(*keys)
            return True
        except RedisError as e:
            logger.warning("Redis DELETE failed: %s", e)
            return False

    async def sadd(self, key: str, *members: str) -> bool:
        """Add member(s) to a set, returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.sadd(key, *members)
            return True
        except RedisError as e:
            logger.warning("Redis SADD failed: %s", e)
            return False

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set, returns an empty set if Redis unavailable."""
        if not self._client:
            return set()
        try:
            members = await self._client.smembers(key)
        except RedisError as e:
            logger.warning("Redis SMEMBERS failed: %s", e)
            return set()
        return {m.decode() if isinstance(m, bytes) else m for m in members}

    async def expire(self, key: str, seconds: int) -> bool:
        """Set a key's TTL, returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.expire(key, seconds)
            return True
        except RedisError as e:
            logger.warning("Redis EXPIRE failed: %s", e)
            return False

    async def flushdb(self) -> bool:
        """Flush current database (for testing). Returns False if unavailable."""
        if not self._client:
            return False
        try:
            await self._client.flushdb()
            return True
        except RedisError as e:
            logger.warning("Redis FLUSHDB failed: %s", e)
            return False

    async def eval_fixed_window(
        self,
        key: str,
        max_requests: int,
        window_seconds: int,
    ) -> list[int] | None:
        """
        Execute fixed window rate limit script with automatic script reload.

        Handles NOSCRIPT errors by reloading scripts and retrying once.

        Args:
            key: Redis key for this rate limit bucket
            max_requests: Maximum requests allowed in window
            window_seconds: Window size in seconds

        Returns:
            [allowed, remaining, ttl, retry_after] or None if Redis unavailable
        """
        # SHA is None when Redis was unavailable at startup or the reload failed.
        # Either way we fail open by returning None.
        if not self._client or self._fixed_window_sha is None:
            return None

        try:
            return await self._client.evalsha(
                self._fixed_window_sha,
                1,
                key,
                max_requests,
                window_seconds,
            )
        except NoScriptError:
            # Redis restarted, scripts need reloading
            logger.warning("redis_script_reload", extra={"script": "fixed_window"})
            await self._load_scripts()
            if self._fixed_window_sha is None:
                return None
            # Retry once with fresh SHA
            try:
                return await self._client.evalsha(
                    self._fixed_window_sha,
                    1,
                    key,
                    max_requests,
                    window_seconds,
                )
            except RedisError as e:
                logger.warning("Redis fixed window retry failed: %s", e)
                return None
        except RedisError as e:
            logger.warning("Redis fixed window failed: %s", e)
            return None
