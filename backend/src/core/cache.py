"""JSON cache-aside helpers for read-heavy catalog data."""
import json
import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)


class CacheKeys:
    """
    Cache key builders, one namespace per entity kind.

    Page and size are formatted as decimal text so that every (page, size) pair
    maps to a distinct, human-readable key.
    """

    CATEGORIES_ALL = "categories:all"
    COURSES_FEATURED = "courses:featured"
    COURSE_LIST_INDEX = "courses:list:keys"

    @staticmethod
    def course(course_id: UUID | str) -> str:
        """Key for a single course detail projection."""
        return f"course:{course_id}"

    @staticmethod
    def course_list(page: int, page_size: int) -> str:
        """Key for one page of the unfiltered course list."""
        return f"courses:list:page:{int(page)}:size:{int(page_size)}"

    @staticmethod
    def reset_token(token_hash: str) -> str:
        """Key for a password reset grant (keyed by the token's hash)."""
        return f"reset_token:{token_hash}"


class JsonCache:
    """
    Best-effort JSON cache on top of RedisClient.

    Reads never fail: a miss, a Redis outage and an undecodable payload all look
    the same to the caller (None), who then falls through to the database.
    Writes and deletes report success as a bool and never raise.
    """

    def __init__(self, redis_client: "RedisClient") -> None:
        """Initialize the cache with a Redis client."""
        self._redis = redis_client

    @property
    def redis(self) -> "RedisClient":
        """Underlying Redis client."""
        return self._redis

    async def get_json(self, key: str) -> Any | None:
        """
        Get and decode a cached value.

        Args:
            key: Cache key.

        Returns:
            The decoded value, or None on a miss or any cache-layer problem.
        """
        data = await self._redis.get(key)
        if data is None:
            logger.debug("cache_miss key=%s", key)
            return None
        try:
            value = json.loads(data)
        except (TypeError, ValueError) as e:
            # Poisoned entry: drop it so the next read repopulates from the store
            logger.warning("cache_decode_failed key=%s error=%s", key, e)
            await self._redis.delete(key)
            return None
        logger.debug("cache_hit key=%s", key)
        return value

    async def pop_json(self, key: str) -> Any | None:
        """
        Atomically take a cached value: read it and delete the key.

        Concurrent callers can't both get the value. Returns None on a miss, an
        undecodable value or any cache-layer problem.
        """
        data = await self._redis.getdel(key)
        if data is None:
            return None
        try:
            return json.loads(data)
        except (TypeError, ValueError) as e:
            logger.warning("cache_decode_failed key=%s error=%s", key, e)
            return None

    async def set_json(self, key: str, value: Any, ttl: int) -> bool:
        """
        Encode and store a value with a TTL.

        Population is advisory: a value that can't be encoded or a failed write
        is logged and reported as False, never raised.
        """
        try:
            data = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning("cache_encode_failed key=%s error=%s", key, e)
            return False
        stored = await self._redis.setex(key, ttl, data)
        if stored:
            logger.debug("cache_set key=%s ttl=%s", key, ttl)
        return stored

    async def invalidate(self, *keys: str) -> bool:
        """Delete every given key. Returns False if the delete didn't reach Redis."""
        deleted = await self._redis.delete(*keys)
        if deleted:
            logger.debug("cache_invalidate keys=%s", ",".join(keys))
        else:
            logger.warning("cache_invalidate_failed keys=%s", ",".join(keys))
        return deleted

    async def track(self, index_key: str, member: str, ttl: int) -> bool:
        """
        Record an issued aggregate key in an index set.

        The index TTL is refreshed to the aggregate TTL on every add, so it never
        outlives the keys it lists by more than one TTL.
        """
        added = await self._redis.sadd(index_key, member)
        if added:
            await self._redis.expire(index_key, ttl)
        return added

    async def invalidate_tracked(self, index_key: str) -> bool:
        """Delete every key recorded in an index set, and the index itself."""
        members = await self._redis.smembers(index_key)
        return await self.invalidate(*sorted(members), index_key)
