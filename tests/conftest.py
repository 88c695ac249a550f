"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite; StaticPool makes every session share the
  one connection, because an in-memory database lives and dies with it.
- ``get_db`` is overridden so requests use the test session factory, and
  ``get_file_storage`` is overridden with a recorder so hard deletes never
  touch the filesystem.
- All tables are created before each test and dropped after it.
- ``factory`` seeds rows directly through the ORM and commits each one, so
  they are visible to the sessions opened by API requests.
"""
import itertools
from datetime import datetime
from typing import Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from blog_backend.auth import create_access_token
from blog_backend.database import Base, get_db
from blog_backend.main import app
from blog_backend.middleware import install_query_counter
from blog_backend.models import (
    Article,
    ArticleImage,
    ArticleTag,
    Category,
    Comment,
    Tag,
    User,
    UserProfile,
)
from blog_backend.roles import Role
from blog_backend.storage import get_file_storage

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
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
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


class RecordingFileStorage:
    """Stands in for the image store; remembers what it was asked to delete."""

    def __init__(self) -> None:
        self.deleted: list[str] = []

    async def delete(self, filenames: Iterable[str]) -> None:
        self.deleted.extend(filenames)


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

class Factory:
    """Commit-per-call row builder for tests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._seq = itertools.count(1)

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, username: str | None = None, *, profile: bool = True, is_deleted: bool = False) -> User:
        n = next(self._seq)
        username = username or f"user{n}"
        user = await self._save(
            User(username=username, email=f"{username}@example.com", is_active=True, is_deleted=is_deleted)
        )
        if profile:
            await self._save(UserProfile(user_id=user.id, display_name=username.title(), bio="Writes things."))
        return user

    async def category(self, slug: str | None = None, *, is_deleted: bool = False) -> Category:
        slug = slug or f"category-{next(self._seq)}"
        return await self._save(Category(name=slug.replace("-", " ").title(), slug=slug, is_deleted=is_deleted))

    async def tag(self, slug: str | None = None, *, is_deleted: bool = False) -> Tag:
        slug = slug or f"tag-{next(self._seq)}"
        return await self._save(Tag(name=slug.replace("-", " ").title(), slug=slug, is_deleted=is_deleted))

    async def article(
        self,
        author: User,
        category: Category,
        *,
        title: str | None = None,
        slug: str | None = None,
        content: str = "Some article content.",
        is_published: bool = True,
        is_deleted: bool = False,
        tags: Iterable[Tag] = (),
        created_at: datetime | None = None,
    ) -> Article:
        n = next(self._seq)
        article = Article(
            title=title or f"Article {n}",
            slug=slug or f"article-{n}",
            content=content,
            is_published=is_published,
            is_deleted=is_deleted,
            published_at=datetime(2024, 1, 1) if is_published else None,
            author_id=author.id,
            category_id=category.id,
        )
        if created_at is not None:
            article.created_at = created_at
        await self._save(article)
        for tag in tags:
            await self._save(ArticleTag(article_id=article.id, tag_id=tag.id))
        return article

    async def image(self, article: Article, filename: str) -> ArticleImage:
        return await self._save(
            ArticleImage(article_id=article.id, filename=filename, url=f"/media/{filename}")
        )

    async def comment(
        self,
        article: Article,
        user: User,
        content: str = "Nice post.",
        *,
        parent: Comment | None = None,
        is_deleted: bool = False,
    ) -> Comment:
        return await self._save(
            Comment(
                content=content,
                article_id=article.id,
                user_id=user.id,
                parent_comment_id=parent.id if parent else None,
                is_deleted=is_deleted,
            )
        )


def bearer(user: User, *roles: Role) -> dict[str, str]:
    """Authorization header for *user* holding *roles*."""
    return {"Authorization": f"Bearer {create_access_token(user.id, roles or (Role.USER,))}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def file_storage() -> RecordingFileStorage:
    storage = RecordingFileStorage()
    app.dependency_overrides[get_file_storage] = lambda: storage
    yield storage
    app.dependency_overrides.pop(get_file_storage, None)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    return bearer
