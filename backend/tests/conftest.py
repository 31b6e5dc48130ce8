"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.request_context import Actor
from models import Base, Category, Page, Post, Tag, User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="session")
def database_url() -> Generator[str]:
    """
    Set the database URL in the environment.

    This must be set before any app imports that trigger Settings validation.
    Defaults to an in-memory SQLite database; set TEST_POSTGRES=1 to run the
    suite against PostgreSQL in a container instead (requires Docker).
    """
    if os.environ.get("TEST_POSTGRES") == "1":
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
            url = postgres.get_connection_url()
            os.environ["DATABASE_URL"] = url
            yield url
        return

    os.environ["DATABASE_URL"] = TEST_DATABASE_URL
    yield TEST_DATABASE_URL


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """
    Create a fresh schema per test.

    Tasks commit their own work, so tests cannot rely on an outer rollback;
    the schema is dropped afterwards instead. For SQLite, StaticPool keeps the
    single in-memory connection alive for the engine's lifetime, so every
    session in the test sees the same database.
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the per-test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session override."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, email: str, name: str, roles: list[str]) -> User:
    user = User(email=email, name=name, roles=roles)
    db.add(user)
    await db.flush()
    return user


@pytest.fixture
async def writer(db_session: AsyncSession) -> User:
    """A user with only the Writer role."""
    return await _create_user(db_session, "writer@test.com", "Wendy Writer", ["Writer"])


@pytest.fixture
async def editor(db_session: AsyncSession) -> User:
    """A user with the Editor role."""
    return await _create_user(db_session, "editor@test.com", "Eddie Editor", ["Editor"])


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    """A user with the Admin role."""
    return await _create_user(db_session, "admin@test.com", "Ada Admin", ["Admin"])


@pytest.fixture
def writer_actor(writer: User) -> Actor:
    return Actor(user_id=writer.id, roles=writer.role_names)


@pytest.fixture
def editor_actor(editor: User) -> Actor:
    return Actor(user_id=editor.id, roles=editor.role_names)


@pytest.fixture
def admin_actor(admin: User) -> Actor:
    return Actor(user_id=admin.id, roles=admin.role_names)


@pytest.fixture
async def category(db_session: AsyncSession) -> Category:
    category = Category(name="Soups", slug="soups")
    db_session.add(category)
    await db_session.flush()
    return category


@pytest.fixture
async def tag(db_session: AsyncSession) -> Tag:
    tag = Tag(name="Vegetarian", slug="vegetarian")
    db_session.add(tag)
    await db_session.flush()
    return tag


@pytest.fixture
async def post(
    db_session: AsyncSession,
    writer: User,
    category: Category,
    tag: Tag,
) -> Post:
    """A categorized, tagged article with no versions yet."""
    post = Post(
        title="Tomato Soup",
        excerpt="A weeknight classic.",
        content="Roast the tomatoes first.",
        author_id=writer.id,
        post_type="article",
        categories=[category],
        tags=[tag],
    )
    db_session.add(post)
    await db_session.flush()
    return post


@pytest.fixture
async def untagged_post(db_session: AsyncSession, writer: User) -> Post:
    """A post with no categories or tags (cannot be published)."""
    post = Post(title="Bare Post", content="Nothing attached.", author_id=writer.id)
    db_session.add(post)
    await db_session.flush()
    return post


@pytest.fixture
async def page(db_session: AsyncSession) -> Page:
    """A page with no versions yet."""
    page = Page(slug="about", title="About Us", content="We cook.")
    db_session.add(page)
    await db_session.flush()
    return page
