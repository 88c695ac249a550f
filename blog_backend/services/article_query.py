"""
Paginated article query assembly.

``build_article_query`` folds the caller's visibility predicate and the
request filters into one immutable ``ArticleQuery``.  ``paginate_articles``
runs it as two statements:

1. COUNT over the filtered predicate (independent of the page window).
2. SELECT with ORDER BY / LIMIT / OFFSET and eager-loaded relations.

The two reads are not wrapped in a snapshot, so a concurrent write may make
``total_count`` and the page disagree for one request.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_backend.config import settings
from blog_backend.models import Article, ArticleTag, User
from blog_backend.services.visibility import (
    AllOf,
    HasTag,
    InCategory,
    KeywordMatch,
    Predicate,
    build_list_predicate,
)


@dataclass(frozen=True)
class ArticleFilters:
    category_slug: str | None = None
    tag_slug: str | None = None
    keyword: str | None = None
    include_deleted: bool = False

    def predicates(self) -> tuple[Predicate, ...]:
        parts: list[Predicate] = []
        if self.category_slug:
            parts.append(InCategory(self.category_slug))
        if self.tag_slug:
            parts.append(HasTag(self.tag_slug))
        if self.keyword:
            parts.append(KeywordMatch(self.keyword))
        return tuple(parts)


@dataclass(frozen=True)
class PageWindow:
    page: int
    page_size: int

    @classmethod
    def clamp(cls, page: int | None = None, page_size: int | None = None) -> PageWindow:
        """Page below 1 becomes 1; page size is forced into [1, MAX_PAGE_SIZE]."""
        page = page if page is not None and page >= 1 else 1
        if page_size is None:
            page_size = settings.DEFAULT_PAGE_SIZE
        page_size = max(1, min(page_size, settings.MAX_PAGE_SIZE))
        return cls(page=page, page_size=page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def article_load_options():
    """Eager-load everything the aggregate mapper reads."""
    return (
        joinedload(Article.author).joinedload(User.profile),
        joinedload(Article.category),
        selectinload(Article.article_tags).joinedload(ArticleTag.tag),
    )


@dataclass(frozen=True)
class ArticleQuery:
    predicate: Predicate
    window: PageWindow
    ascending: bool = False

    def count_statement(self) -> Select:
        return select(func.count()).select_from(Article).where(self.predicate.to_clause())

    def page_statement(self) -> Select:
        # id breaks created_at ties so repeated reads return the same order.
        if self.ascending:
            order = (Article.created_at.asc(), Article.id.asc())
        else:
            order = (Article.created_at.desc(), Article.id.desc())
        return (
            select(Article)
            .where(self.predicate.to_clause())
            .options(*article_load_options())
            .order_by(*order)
            .offset(self.window.offset)
            .limit(self.window.page_size)
        )


def build_article_query(
    role,
    caller_id: int | None,
    filters: ArticleFilters,
    window: PageWindow,
    ascending: bool = False,
) -> ArticleQuery:
    visibility = build_list_predicate(role, caller_id, filters.include_deleted)
    return ArticleQuery(
        predicate=AllOf((visibility, *filters.predicates())),
        window=window,
        ascending=ascending,
    )


async def paginate_articles(db: AsyncSession, query: ArticleQuery) -> tuple[Sequence[Article], int]:
    total: int = (await db.execute(query.count_statement())).scalar_one()
    if total == 0 or query.window.offset >= total:
        return [], total
    result = await db.execute(query.page_statement())
    return result.unique().scalars().all(), total
