"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from testcontainers.redis import RedisContainer

# Tests run against in-memory SQLite unless TEST_DATABASE_URL points elsewhere
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Must be set before any app imports that trigger Settings validation
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-jwt-signing")

from core.cache import JsonCache  # noqa: E402
from core.config import Settings  # noqa: E402
from core.password_hasher import PasswordHasher  # noqa: E402
from core.redis import RedisClient  # noqa: E402
from core.token_signer import TokenSigner  # noqa: E402
from db.session import build_engine  # noqa: E402
from models.base import Base  # noqa: E402
from services.auth_service import AuthService  # noqa: E402
from services.category_service import CategoryService  # noqa: E402
from services.course_service import CourseService  # noqa: E402


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer]:
    """Start a Redis container for the test session."""
    with RedisContainer("redis:7-alpine") as redis:
        yield redis


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    """Connection URL of the test Redis."""
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: in-memory SQLite and cheap bcrypt."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        jwt_secret=os.environ["JWT_SECRET"],
        bcrypt_rounds=4,
    )


@pytest.fixture
async def async_engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with the schema in place."""
    engine = build_engine(settings)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session bound to the test transaction.

    Uses begin_nested() for savepoints, allowing the session's flush/commit
    to work within our outer test transaction.
    """
    session_factory = async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis_server(redis_url: str) -> AsyncGenerator[Redis]:
    """
    Plain redis-py client on the test Redis, for inspecting what the app stored.

    The database is flushed before and after each test.
    """
    server = Redis.from_url(redis_url, decode_responses=True)
    await server.flushdb()
    yield server
    await server.flushdb()
    await server.aclose()


@pytest.fixture
async def redis_client(redis_url: str, redis_server: Redis) -> AsyncGenerator[RedisClient]:  # noqa: ARG001
    """Connected RedisClient with its Lua scripts loaded."""
    client = RedisClient(redis_url)
    await client.connect()
    assert client.is_connected
    yield client
    await client.close()


@pytest.fixture
async def disconnected_redis_client() -> RedisClient:
    """RedisClient that never connected (Redis disabled)."""
    client = RedisClient("redis://localhost:6379", enabled=False)
    await client.connect()
    return client


@pytest.fixture
def cache(redis_client: RedisClient) -> JsonCache:
    """JSON cache over the test Redis."""
    return JsonCache(redis_client)


@pytest.fixture
def password_hasher() -> PasswordHasher:
    """Low-cost hasher so tests stay fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_signer(settings: Settings) -> TokenSigner:
    """Access token signer with the test secret."""
    return TokenSigner(secret=settings.jwt_secret, issuer=settings.app_name)


@pytest.fixture
def auth_service(
    db_session: AsyncSession,
    cache: JsonCache,
    password_hasher: PasswordHasher,
    token_signer: TokenSigner,
    settings: Settings,
) -> AuthService:
    """Session manager bound to the test session."""
    return AuthService(db_session, cache, password_hasher, token_signer, settings)


@pytest.fixture
def category_service(
    db_session: AsyncSession, cache: JsonCache, settings: Settings,
) -> CategoryService:
    """Category service bound to the test session."""
    return CategoryService(db_session, cache, settings)


@pytest.fixture
def course_service(
    db_session: AsyncSession, cache: JsonCache, settings: Settings,
) -> CourseService:
    """Course service bound to the test session."""
    return CourseService(db_session, cache, settings)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    redis_client: RedisClient,
    cache: JsonCache,
    password_hasher: PasswordHasher,
    token_signer: TokenSigner,
    settings: Settings,
) -> AsyncGenerator[AsyncClient]:
    """
    Create a test client with database session override.

    ASGITransport doesn't run the lifespan, so the shared clients it would
    create are put on app.state here.
    """
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.state.redis_client = redis_client
    app.state.cache = cache
    app.state.password_hasher = password_hasher
    app.state.token_signer = token_signer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()

