"""
Paginated listing tests: window clamping, filters and ordering, run
through ``article_service.list_articles`` with a real session.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend.auth import Caller
from blog_backend.roles import Role
from blog_backend.services import article_service
from blog_backend.services.article_query import ArticleFilters, PageWindow

BASE_TIME = datetime(2024, 3, 1, 9, 0)
ANONYMOUS = Caller.anonymous()


async def _list(db, caller=ANONYMOUS, filters=None, page=None, page_size=None, ascending=False):
    result = await article_service.list_articles(
        db, caller, filters or ArticleFilters(), page, page_size, ascending
    )
    assert result.success
    return result.value


# ---------------------------------------------------------------------------
# PageWindow
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "page, page_size, expected",
    [
        (None, None, (1, 10)),
        (0, 5, (1, 5)),
        (-3, 0, (1, 1)),
        (2, 1000, (2, 20)),
        (4, 20, (4, 20)),
    ],
)
def test_page_window_clamp(page, page_size, expected):
    window = PageWindow.clamp(page, page_size)
    assert (window.page, window.page_size) == expected


def test_page_window_offset():
    assert PageWindow.clamp(3, 7).offset == 14


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_pages_cover_every_row_once(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    for i in range(23):
        # Pairs share a timestamp so the id tie-break is exercised.
        await factory.article(author, category, created_at=BASE_TIME + timedelta(minutes=i // 2))

    seen = []
    first = await _list(db_session, page=1, page_size=7)
    pages = -(-first.total_count // first.page_size)
    for page in range(1, pages + 1):
        seen.extend(item.id for item in (await _list(db_session, page=page, page_size=7)).items)

    assert first.total_count == 23
    assert len(seen) == 23
    assert len(set(seen)) == 23


@pytest.mark.asyncio
async def test_order_is_stable_across_reads(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    for _ in range(6):
        await factory.article(author, category, created_at=BASE_TIME)

    first = [a.id for a in (await _list(db_session)).items]
    second = [a.id for a in (await _list(db_session)).items]
    assert first == second == sorted(first, reverse=True)


@pytest.mark.asyncio
async def test_ascending_and_descending(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    old = await factory.article(author, category, created_at=BASE_TIME)
    new = await factory.article(author, category, created_at=BASE_TIME + timedelta(days=1))

    assert [a.id for a in (await _list(db_session)).items] == [new.id, old.id]
    page = await _list(db_session, ascending=True)
    assert [a.id for a in page.items] == [old.id, new.id]
    assert page.is_ascending is True


@pytest.mark.asyncio
async def test_oversized_page_is_clamped(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    for _ in range(25):
        await factory.article(author, category)

    page = await _list(db_session, page_size=1000)
    assert page.page_size == 20
    assert len(page.items) == 20
    assert page.total_count == 25


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty_with_total(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    for _ in range(3):
        await factory.article(author, category)

    page = await _list(db_session, page=5, page_size=2)
    assert page.items == []
    assert page.total_count == 3
    assert page.current_page == 5


# ---------------------------------------------------------------------------
# Visibility in lists
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_list_shows_only_published_live(db_session: AsyncSession, factory):
    author = await factory.user()
    reader = await factory.user()
    category = await factory.category()
    live = await factory.article(author, category)
    await factory.article(author, category, is_published=False)
    await factory.article(author, category, is_deleted=True)

    caller = Caller(user_id=reader.id, roles=frozenset({Role.USER}))
    page = await _list(db_session, caller, ArticleFilters(include_deleted=True))
    assert [a.id for a in page.items] == [live.id]
    assert page.total_count == 1


@pytest.mark.asyncio
async def test_author_list_includes_own_drafts_only(db_session: AsyncSession, factory):
    me = await factory.user()
    someone = await factory.user()
    category = await factory.category()
    mine = await factory.article(me, category, is_published=False)
    await factory.article(someone, category, is_published=False)
    theirs = await factory.article(someone, category)

    caller = Caller(user_id=me.id, roles=frozenset({Role.AUTHOR}))
    ids = {a.id for a in (await _list(db_session, caller)).items}
    assert ids == {mine.id, theirs.id}


@pytest.mark.asyncio
async def test_admin_include_deleted(db_session: AsyncSession, factory):
    author = await factory.user()
    admin = await factory.user()
    category = await factory.category()
    await factory.article(author, category)
    await factory.article(author, category, is_deleted=True)
    await factory.article(author, category, is_published=False)

    caller = Caller(user_id=admin.id, roles=frozenset({Role.ADMIN}))
    assert (await _list(db_session, caller)).total_count == 2
    assert (await _list(db_session, caller, ArticleFilters(include_deleted=True))).total_count == 3


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_category_filter(db_session: AsyncSession, factory):
    author = await factory.user()
    news = await factory.category("news")
    howto = await factory.category("howto")
    wanted = await factory.article(author, news)
    await factory.article(author, howto)

    page = await _list(db_session, filters=ArticleFilters(category_slug="news"))
    assert [a.id for a in page.items] == [wanted.id]
    assert page.items[0].category.slug == "news"


@pytest.mark.asyncio
async def test_tag_filter_ignores_deleted_tags(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    python = await factory.tag("python")
    retired = await factory.tag("retired", is_deleted=True)
    tagged = await factory.article(author, category, tags=[python, retired])
    await factory.article(author, category)

    page = await _list(db_session, filters=ArticleFilters(tag_slug="python"))
    assert [a.id for a in page.items] == [tagged.id]
    assert [t.slug for t in page.items[0].tags] == ["python"]
    assert (await _list(db_session, filters=ArticleFilters(tag_slug="retired"))).total_count == 0


@pytest.mark.asyncio
async def test_keyword_matches_title_or_content_case_insensitively(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    by_title = await factory.article(author, category, title="Async SQLAlchemy Tips")
    by_content = await factory.article(author, category, content="notes on sqlalchemy sessions")
    await factory.article(author, category, title="Unrelated", content="nothing here")

    page = await _list(db_session, filters=ArticleFilters(keyword="SQLALCHEMY"))
    assert {a.id for a in page.items} == {by_title.id, by_content.id}


@pytest.mark.asyncio
async def test_keyword_wildcards_are_literal(db_session: AsyncSession, factory):
    author = await factory.user()
    category = await factory.category()
    hit = await factory.article(author, category, title="Save 50% today")
    await factory.article(author, category, title="Save 500 today")

    page = await _list(db_session, filters=ArticleFilters(keyword="50%"))
    assert [a.id for a in page.items] == [hit.id]


@pytest.mark.asyncio
async def test_filters_combine_with_and(db_session: AsyncSession, factory):
    author = await factory.user()
    news = await factory.category("news")
    other = await factory.category("other")
    tag = await factory.tag("release")
    hit = await factory.article(author, news, title="Release notes", tags=[tag])
    await factory.article(author, other, title="Release notes", tags=[tag])
    await factory.article(author, news, title="Release notes")

    filters = ArticleFilters(category_slug="news", tag_slug="release", keyword="notes")
    page = await _list(db_session, filters=filters)
    assert [a.id for a in page.items] == [hit.id]
    assert page.total_count == 1


@pytest.mark.asyncio
async def test_list_items_carry_author_profile(db_session: AsyncSession, factory):
    with_profile = await factory.user("alice")
    without_profile = await factory.user("bob", profile=False)
    category = await factory.category()
    await factory.article(with_profile, category, created_at=BASE_TIME)
    await factory.article(without_profile, category, created_at=BASE_TIME + timedelta(hours=1))

    items = (await _list(db_session)).items
    assert items[0].author.username == "bob"
    assert items[0].author.profile is None
    assert items[1].author.profile.display_name == "Alice"
