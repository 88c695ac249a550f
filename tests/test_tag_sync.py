"""
Tag synchronisation tests: exercises the diff/apply logic against SQLite.
"""
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend.models import ArticleTag
from blog_backend.outcomes import OutcomeKind
from blog_backend.services.tag_sync import compute_tag_delta, sync_article_tags, validate_tag_ids


async def _links(db: AsyncSession, article_id: int) -> dict[int, int]:
    """tag_id -> article_tags.id for one article."""
    result = await db.execute(
        select(ArticleTag.tag_id, ArticleTag.id).where(ArticleTag.article_id == article_id)
    )
    return dict(result.all())


def test_compute_tag_delta():
    delta = compute_tag_delta([1, 2, 3], [2, 3, 4, 4])
    assert delta.to_add == {4}
    assert delta.to_remove == {1}
    assert compute_tag_delta([1, 2], [2, 1]).is_empty


@pytest.mark.asyncio
async def test_sync_adds_and_removes_only_the_difference(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    python, fastapi, sql = [await factory.tag(s) for s in ("python", "fastapi", "sql")]
    article = await factory.article(author, category, tags=[python, fastapi])
    before = await _links(db_session, article.id)

    result = await sync_article_tags(db_session, article.id, [fastapi.id, sql.id], author.id)
    await db_session.commit()

    assert result.success
    assert result.value.to_add == {sql.id}
    assert result.value.to_remove == {python.id}
    after = await _links(db_session, article.id)
    assert set(after) == {fastapi.id, sql.id}
    # The untouched association keeps its row.
    assert after[fastapi.id] == before[fastapi.id]


@pytest.mark.asyncio
async def test_sync_is_idempotent(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    tags = [await factory.tag() for _ in range(3)]
    article = await factory.article(author, category)
    wanted = [t.id for t in tags]

    first = await sync_article_tags(db_session, article.id, wanted, author.id)
    await db_session.commit()
    snapshot = await _links(db_session, article.id)
    second = await sync_article_tags(db_session, article.id, wanted, author.id)
    await db_session.commit()

    assert first.success and not first.value.is_empty
    assert second.success and second.value.is_empty
    assert await _links(db_session, article.id) == snapshot


@pytest.mark.asyncio
async def test_duplicate_ids_are_collapsed(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    tag = await factory.tag()
    article = await factory.article(author, category)

    result = await sync_article_tags(db_session, article.id, [tag.id, tag.id, tag.id], author.id)
    await db_session.commit()

    assert result.success
    assert list(await _links(db_session, article.id)) == [tag.id]


@pytest.mark.asyncio
async def test_deleted_tag_rejects_whole_request(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    live = await factory.tag("live")
    retired = await factory.tag("retired", is_deleted=True)
    extra = await factory.tag("extra")
    article = await factory.article(author, category, tags=[live])
    before = await _links(db_session, article.id)

    result = await sync_article_tags(db_session, article.id, [extra.id, retired.id], author.id)

    assert result.kind is OutcomeKind.VALIDATION
    assert str(retired.id) in result.error_message
    assert await _links(db_session, article.id) == before


@pytest.mark.asyncio
async def test_unknown_tag_is_reported(db_session: AsyncSession):
    result = await validate_tag_ids(db_session, [404, 405])
    assert result.kind is OutcomeKind.VALIDATION
    assert "404, 405" in result.error_message


@pytest.mark.asyncio
async def test_empty_set_clears_tags(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    article = await factory.article(author, category, tags=[await factory.tag(), await factory.tag()])

    result = await sync_article_tags(db_session, article.id, [], author.id)
    await db_session.commit()

    assert result.success
    assert len(result.value.to_remove) == 2
    assert await _links(db_session, article.id) == {}
