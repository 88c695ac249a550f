"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Reads go through the visibility policy in ``visibility.py``; list reads
  are assembled by ``article_query.py`` and shaped by ``mappers.py``.
- Mutations load the row, run ``can_modify_article`` and validate every foreign
  reference (author, category, tags) before the first write, so a rejected
  request never leaves a partial row behind.
- Unique-constraint violations are caught around the flush that can raise
  them, rolled back, and reported as a Conflict.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend import audit
from blog_backend.auth import Caller
from blog_backend.models import Article, ArticleImage, ArticleTag, Comment
from blog_backend.outcomes import ServiceResult
from blog_backend.schemas import ArticleCreate, ArticlePage, ArticleResponse, ArticleUpdate
from blog_backend.services.article_query import (
    ArticleFilters,
    PageWindow,
    article_load_options,
    build_article_query,
    paginate_articles,
)
from blog_backend.services.mappers import article_to_response
from blog_backend.services.references import load_active_category, load_active_user
from blog_backend.services.tag_sync import apply_tag_delta, sync_article_tags, validate_tag_ids
from blog_backend.services.visibility import build_list_predicate, can_modify_article, can_view
from blog_backend.storage import FileStorage

logger = logging.getLogger(__name__)

NOT_FOUND_OR_HIDDEN = "Article not found or access denied"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")
_SLUG_ASCII_RE = re.compile(r"[^a-z0-9-]")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase ASCII slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    text = _SLUG_ASCII_RE.sub("", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _conflict_message(exc: IntegrityError, slug: str | None) -> str:
    detail = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if "slug" in detail:
        return f'Article with slug "{slug}" already exists. Please use a different slug.'
    return "Article conflicts with an existing record"


async def _fetch_article(db: AsyncSession, article_id: int) -> Article | None:
    """Load one article with every relation the mapper needs, bypassing stale state."""
    result = await db.execute(
        select(Article)
        .where(Article.id == article_id)
        .options(*article_load_options())
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _load_for_mutation(db: AsyncSession, caller: Caller, article_id: int) -> ServiceResult[Article]:
    """
    Resolve *article_id* for a write by *caller*.

    Rows the caller cannot even see are reported as missing; rows the caller
    can see but not change are an access-denied outcome.
    """
    article = await db.get(Article, article_id)
    if article is None:
        return ServiceResult.not_found("Article not found")
    if not can_modify_article(article, caller.role, caller.user_id):
        if not can_view(article, caller.role, caller.user_id):
            return ServiceResult.not_found("Article not found")
        logger.info("User %s denied write on article %s", caller.user_id, article_id)
        return ServiceResult.access_denied("Access denied: you cannot modify this article")
    return ServiceResult.ok(article)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    caller: Caller,
    filters: ArticleFilters,
    page: int | None = None,
    page_size: int | None = None,
    ascending: bool = False,
) -> ServiceResult[ArticlePage]:
    """
    Return one page of the articles *caller* may see.

    ``include_deleted`` in *filters* is honoured for privileged callers only
    and silently ignored for everyone else.
    """
    window = PageWindow.clamp(page, page_size)
    query = build_article_query(caller.role, caller.user_id, filters, window, ascending)
    articles, total = await paginate_articles(db, query)
    return ServiceResult.ok(
        ArticlePage(
            items=[article_to_response(a) for a in articles],
            current_page=window.page,
            page_size=window.page_size,
            total_count=total,
            is_ascending=ascending,
        )
    )


async def get_article_by_slug(db: AsyncSession, caller: Caller, slug: str) -> ServiceResult[ArticleResponse]:
    """Public lookup: "missing" and "hidden" produce the same not-found outcome."""
    predicate = build_list_predicate(caller.role, caller.user_id, include_deleted=False)
    result = await db.execute(
        select(Article)
        .where(Article.slug == slug, predicate.to_clause())
        .options(*article_load_options())
    )
    article = result.unique().scalar_one_or_none()
    if article is None:
        return ServiceResult.not_found(NOT_FOUND_OR_HIDDEN)
    return ServiceResult.ok(article_to_response(article))


async def get_article_by_id(db: AsyncSession, caller: Caller, article_id: int) -> ServiceResult[ArticleResponse]:
    """Editor lookup for authors and admins; distinguishes missing from forbidden."""
    if not caller.role.can_author:
        return ServiceResult.access_denied("Access denied: only authors and admins can look up articles by id")
    article = await _fetch_article(db, article_id)
    if article is None:
        return ServiceResult.not_found("Article not found")
    if not can_view(article, caller.role, caller.user_id):
        return ServiceResult.access_denied("Access denied: you cannot view this article")
    return ServiceResult.ok(article_to_response(article))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, caller: Caller, data: ArticleCreate) -> ServiceResult[ArticleResponse]:
    """
    Create an article owned by *caller* and attach its tags.

    The slug defaults to ``slugify(title)``.  A duplicate slug is a Conflict
    and nothing is persisted.
    """
    if not caller.role.can_author:
        return ServiceResult.access_denied("Access denied: only authors and admins can create articles")

    author = await load_active_user(db, caller.user_id)
    if not author.success:
        return author.cast()
    category = await load_active_category(db, data.category_id)
    if not category.success:
        return category.cast()
    tag_ids = await validate_tag_ids(db, data.tag_ids)
    if not tag_ids.success:
        return tag_ids.cast()

    slug = data.slug or slugify(data.title)
    if not slug:
        return ServiceResult.validation("Could not derive a slug from the title; please provide one")

    article = Article(
        title=data.title,
        slug=slug,
        content=data.content,
        is_published=data.is_published,
        is_deleted=False,
        published_at=datetime.now(timezone.utc) if data.is_published else None,
        author_id=caller.user_id,
        category_id=data.category_id,
        created_by_id=caller.user_id,
    )
    db.add(article)
    try:
        await db.flush()
        await apply_tag_delta(db, article.id, tag_ids.value, caller.user_id)
    except IntegrityError as exc:
        await db.rollback()
        logger.info("Article create conflict for slug %r: %s", slug, exc.orig)
        return ServiceResult.conflict(_conflict_message(exc, slug))

    audit.record("CREATE", "Article", article.id, caller.user_id, slug=slug, tag_ids=sorted(tag_ids.value))
    logger.info("Article %s created by user %s", article.id, caller.user_id)
    return ServiceResult.ok(article_to_response(await _fetch_article(db, article.id)))


_NON_NULLABLE_UPDATES = ("title", "slug", "content", "category_id", "is_published")


async def update_article(
    db: AsyncSession,
    caller: Caller,
    article_id: int,
    data: ArticleUpdate,
) -> ServiceResult[ArticleResponse]:
    """
    Partially update an article.

    Only fields present in the payload are touched.  ``tag_ids`` replaces the
    tag set through the synchroniser; omitting it leaves tags alone.  The
    slug is frozen once the article has ever been published.
    """
    loaded = await _load_for_mutation(db, caller, article_id)
    if not loaded.success:
        return loaded.cast()
    article = loaded.value

    changes = data.model_dump(exclude_unset=True)
    tag_ids = changes.pop("tag_ids", None)
    for name in _NON_NULLABLE_UPDATES:
        if name in changes and changes[name] is None:
            return ServiceResult.validation(f"{name} cannot be null")

    if "category_id" in changes and changes["category_id"] != article.category_id:
        category = await load_active_category(db, changes["category_id"])
        if not category.success:
            return category.cast()

    if "slug" in changes and changes["slug"] != article.slug and article.published_at is not None:
        return ServiceResult.validation("Slug cannot be changed once the article has been published")

    validated_tags = None
    if tag_ids is not None:
        validated = await validate_tag_ids(db, tag_ids)
        if not validated.success:
            return validated.cast()
        validated_tags = validated.value

    for name, value in changes.items():
        setattr(article, name, value)
    if article.is_published and article.published_at is None:
        article.published_at = datetime.now(timezone.utc)
    article.updated_by_id = caller.user_id

    try:
        await db.flush()
        if validated_tags is not None:
            await apply_tag_delta(db, article.id, validated_tags, caller.user_id)
    except IntegrityError as exc:
        await db.rollback()
        logger.info("Article %s update conflict: %s", article_id, exc.orig)
        return ServiceResult.conflict(_conflict_message(exc, changes.get("slug")))

    audit.record("UPDATE", "Article", article_id, caller.user_id, fields=sorted(changes))
    return ServiceResult.ok(article_to_response(await _fetch_article(db, article_id)))


async def set_article_tags(
    db: AsyncSession,
    caller: Caller,
    article_id: int,
    tag_ids: list[int],
) -> ServiceResult[ArticleResponse]:
    """Replace only the tag set of an article."""
    loaded = await _load_for_mutation(db, caller, article_id)
    if not loaded.success:
        return loaded.cast()
    synced = await sync_article_tags(db, article_id, tag_ids, caller.user_id)
    if not synced.success:
        return synced.cast()
    if not synced.value.is_empty:
        audit.record(
            "UPDATE", "ArticleTags", article_id, caller.user_id,
            added=sorted(synced.value.to_add), removed=sorted(synced.value.to_remove),
        )
    return ServiceResult.ok(article_to_response(await _fetch_article(db, article_id)))


async def soft_delete_article(db: AsyncSession, caller: Caller, article_id: int) -> ServiceResult[None]:
    loaded = await _load_for_mutation(db, caller, article_id)
    if not loaded.success:
        return loaded.cast()
    article = loaded.value
    if article.is_deleted:
        return ServiceResult.validation("Article is already deleted")

    article.is_deleted = True
    article.updated_by_id = caller.user_id
    await db.flush()
    audit.record("DELETE", "Article", article_id, caller.user_id, soft=True)
    return ServiceResult.ok(None)


async def restore_article(db: AsyncSession, caller: Caller, article_id: int) -> ServiceResult[ArticleResponse]:
    loaded = await _load_for_mutation(db, caller, article_id)
    if not loaded.success:
        return loaded.cast()
    article = loaded.value
    if not article.is_deleted:
        return ServiceResult.validation("Article is not deleted")

    article.is_deleted = False
    article.updated_by_id = caller.user_id
    await db.flush()
    audit.record("RESTORE", "Article", article_id, caller.user_id)
    return ServiceResult.ok(article_to_response(await _fetch_article(db, article_id)))


async def hard_delete_article(
    db: AsyncSession,
    caller: Caller,
    article_id: int,
    storage: FileStorage,
) -> ServiceResult[None]:
    """
    Permanently remove an article with its comments, tag links and images
    (ADMIN/SUPERADMIN only).  Image files are reclaimed after the rows are gone.
    """
    if not caller.role.is_privileged:
        return ServiceResult.access_denied("Access denied: only admins can permanently delete articles")

    article = await db.get(Article, article_id)
    if article is None:
        return ServiceResult.not_found("Article not found")

    filenames = (
        await db.execute(select(ArticleImage.filename).where(ArticleImage.article_id == article_id))
    ).scalars().all()

    await db.execute(delete(Comment).where(Comment.article_id == article_id))
    await db.execute(delete(ArticleTag).where(ArticleTag.article_id == article_id))
    await db.execute(delete(ArticleImage).where(ArticleImage.article_id == article_id))
    await db.execute(delete(Article).where(Article.id == article_id))
    await db.flush()

    await storage.delete(filenames)
    audit.record("HARD_DELETE", "Article", article_id, caller.user_id, images=len(filenames))
    logger.info("Article %s permanently deleted by user %s", article_id, caller.user_id)
    return ServiceResult.ok(None)
