"""
Tests for the Redis client module.

Basic operations are thin wrappers over redis.asyncio; the interesting part is
that every failure degrades to a safe default instead of raising.
"""
import asyncio
from unittest.mock import AsyncMock, patch

from redis.asyncio import Redis
from redis.exceptions import RedisError

from core.redis import RedisClient


class TestRedisLuaScripts:
    """Tests for the fixed window script plumbing."""

    async def test__lua_scripts__loaded_on_connect(self, redis_client: RedisClient) -> None:
        """The script SHA is stored after loading."""
        sha = redis_client._fixed_window_sha
        assert sha is not None
        assert len(sha) == 40
        int(sha, 16)

    async def test__eval_fixed_window__counts_down_then_denies(
        self, redis_client: RedisClient,
    ) -> None:
        """Requests within the limit are allowed; the next one is denied."""
        for i in range(3):
            result = await redis_client.eval_fixed_window("test:fixed", 3, 60)
            assert result[0] == 1
            assert result[1] == 3 - i - 1

        result = await redis_client.eval_fixed_window("test:fixed", 3, 60)
        assert result[0] == 0
        assert result[1] == 0
        assert result[3] > 0

    async def test__eval_fixed_window__sets_window_ttl(
        self, redis_client: RedisClient, redis_server: Redis,
    ) -> None:
        """The first hit in a window starts the key's expiry."""
        await redis_client.eval_fixed_window("test:ttl", 3, 60)
        assert 55 <= await redis_server.ttl("test:ttl") <= 60

    async def test__eval_fixed_window__reloads_script_on_noscript(
        self, redis_client: RedisClient, redis_server: Redis,
    ) -> None:
        """A flushed script cache (Redis restarted) reloads the script and retries once."""
        await redis_server.script_flush()

        result = await redis_client.eval_fixed_window("test:reload", 5, 60)

        assert result[0] == 1
        assert result[1] == 4

    async def test__eval_fixed_window__returns_none_without_script(
        self, redis_client: RedisClient,
    ) -> None:
        """With no script SHA, the limiter gets None and fails open."""
        redis_client._fixed_window_sha = None
        assert await redis_client.eval_fixed_window("test:nosha", 5, 60) is None


class TestRedisGetdel:
    """Tests for the atomic read-and-delete used by one-time grants."""

    async def test__getdel__returns_value_and_removes_key(
        self, redis_client: RedisClient, redis_server: Redis,
    ) -> None:
        """The value comes back once; the key is gone afterwards."""
        await redis_server.set("grant", "payload")

        assert await redis_client.getdel("grant") == b"payload"
        assert await redis_server.exists("grant") == 0
        assert await redis_client.getdel("grant") is None

    async def test__getdel__concurrent_callers_single_winner(
        self, redis_client: RedisClient, redis_server: Redis,
    ) -> None:
        """Racing callers cannot both receive the value."""
        await redis_server.set("grant", "payload")

        results = await asyncio.gather(*(redis_client.getdel("grant") for _ in range(5)))

        assert [r for r in results if r is not None] == [b"payload"]

    async def test__getdel__returns_none_on_error(self, redis_client: RedisClient) -> None:
        """GETDEL failure looks like a miss."""
        with patch.object(
            redis_client._client, "getdel", AsyncMock(side_effect=RedisError("boom")),
        ):
            assert await redis_client.getdel("k") is None

class TestRedisClientDisabled:
    """Tests for disabled Redis client."""

    async def test__disabled_client__is_not_connected(
        self, disconnected_redis_client: RedisClient,
    ) -> None:
        """Disabled client never connects and pings False."""
        assert disconnected_redis_client.is_connected is False
        assert await disconnected_redis_client.ping() is False

    async def test__disabled_client__returns_safe_defaults(
        self, disconnected_redis_client: RedisClient,
    ) -> None:
        """Every operation returns its safe default."""
        assert await disconnected_redis_client.get("any:key") is None
        assert await disconnected_redis_client.getdel("any:key") is None
        assert await disconnected_redis_client.setex("any:key", 60, "v") is False
        assert await disconnected_redis_client.delete("any:key") is False
        assert await disconnected_redis_client.sadd("any:set", "m") is False
        assert await disconnected_redis_client.smembers("any:set") == set()
        assert await disconnected_redis_client.expire("any:key", 60) is False
        assert await disconnected_redis_client.eval_fixed_window("k", 1, 60) is None


class TestRedisClientFailures:
    """Errors from a connected Redis are swallowed into safe defaults."""

    async def test__get__returns_none_on_error(self, redis_client: RedisClient) -> None:
        """GET failure looks like a miss."""
        with patch.object(
            redis_client._client, "get", AsyncMock(side_effect=RedisError("boom")),
        ):
            assert await redis_client.get("k") is None

    async def test__setex__returns_false_on_error(self, redis_client: RedisClient) -> None:
        """SETEX failure is reported, not raised."""
        with patch.object(
            redis_client._client, "setex", AsyncMock(side_effect=RedisError("boom")),
        ):
            assert await redis_client.setex("k", 60, "v") is False

    async def test__delete__returns_false_on_error(self, redis_client: RedisClient) -> None:
        """DEL failure is reported, not raised."""
        with patch.object(
            redis_client._client, "delete", AsyncMock(side_effect=RedisError("boom")),
        ):
            assert await redis_client.delete("k") is False

    async def test__delete__no_keys_is_noop(self, redis_client: RedisClient) -> None:
        """Deleting nothing succeeds without a round trip."""
        assert await redis_client.delete() is True

    async def test__smembers__returns_empty_on_error(self, redis_client: RedisClient) -> None:
        """SMEMBERS failure yields an empty set."""
        with patch.object(
            redis_client._client, "smembers", AsyncMock(side_effect=RedisError("boom")),
        ):
            assert await redis_client.smembers("s") == set()

    async def test__smembers__decodes_bytes(self, redis_client: RedisClient) -> None:
        """Members come back as str."""
        await redis_client.sadd("s", "a", "b")
        assert await redis_client.smembers("s") == {"a", "b"}

    async def test__eval_fixed_window__returns_none_on_error(
        self, redis_client: RedisClient,
    ) -> None:
        """Script failure makes the limiter fail open."""
        with patch.object(
            redis_client._client, "evalsha", AsyncMock(side_effect=RedisError("boom")),
        ):
            assert await redis_client.eval_fixed_window("k", 1, 60) is None

    async def test__connect__failure_leaves_client_disconnected(self) -> None:
        """An unreachable Redis at startup leaves the client disconnected, not broken."""
        client = RedisClient("redis://fake:6379")
        with patch("core.redis.Redis.ping", AsyncMock(side_effect=RedisError("refused"))):
            await client.connect()
        assert client.is_connected is False
        assert await client.get("k") is None

    async def test__close__disconnects(self, redis_client: RedisClient) -> None:
        """Closing drops the client."""
        await redis_client.close()
        assert redis_client.is_connected is False
