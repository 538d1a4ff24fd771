"""
Test infrastructure for the blog JSON:API.

Strategy
--------
- SQLite in-memory via aiosqlite; StaticPool keeps every session on the
  same connection so they all see the same database.
- The app's get_db dependency is overridden with the test session factory.
- Tables are created before and dropped after each test.
- Redis is disabled (cache._redis = None) before every test; the
  CacheManager treats that as a permanent miss, so requests exercise the
  database path.  Tests of the cache-aside path request ``fake_redis``,
  which backs the cache with an in-process fakeredis server.
- Factory fixtures (``make_user``, ``make_post``, ``make_comments``) write
  rows directly and commit, the way model factories seed data for feature
  tests; ``auth_headers`` turns a user into a bearer-token header.
"""
import itertools

import fakeredis
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.cache import cache
from app.database import Base, get_db
from app.main import app
from app.middleware import install_query_counter
from app.models import Comment, Post, Tag, User
from app.security import create_access_token

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
            await cache.run_pending_invalidations(session)
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for service-level tests; the test owns commit/rollback."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def fake_redis():
    """Connect the shared cache to a fresh fakeredis server for one test."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    cache._redis = client
    yield client
    cache._redis = None
    await client.aclose()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user():
    counter = itertools.count(1)

    async def _make(**overrides) -> User:
        n = next(counter)
        fields = {"username": f"user{n}", "email": f"user{n}@example.com"}
        fields.update(overrides)
        async with async_session_test() as session:
            user = User(**fields)
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_tag():
    async def _make(name: str) -> Tag:
        async with async_session_test() as session:
            tag = Tag(name=name)
            session.add(tag)
            await session.commit()
            return tag

    return _make


@pytest.fixture
def make_post():
    counter = itertools.count(1)

    async def _make(author: User, **overrides) -> Post:
        n = next(counter)
        fields = {
            "title": f"Post {n}",
            "slug": f"post-{n}",
            "content": f"Content of post {n}",
            "is_published": True,
        }
        fields.update(overrides)
        async with async_session_test() as session:
            post = Post(author_id=author.id, **fields)
            session.add(post)
            await session.commit()
            return post

    return _make


@pytest.fixture
def make_comments():
    async def _make(post: Post, author: User, count: int, is_published=True) -> list[Comment]:
        """
        Create *count* comments on *post* in id order.

        *is_published* is either a bool or a callable taking the zero-based
        index, for mixed publication sequences.
        """
        async with async_session_test() as session:
            comments = []
            for index in range(count):
                published = is_published(index) if callable(is_published) else is_published
                comment = Comment(
                    content=f"Comment {index} on post {post.id}",
                    is_published=published,
                    post_id=post.id,
                    author_id=author.id,
                )
                session.add(comment)
                # Flush one by one so ids follow the sequence index.
                await session.flush()
                comments.append(comment)
            await session.commit()
            return comments

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
