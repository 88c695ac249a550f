"""
Visibility policy for articles.

Every rule is an immutable predicate value that can be evaluated two ways:

- ``matches(obj)`` against an in-memory row (single-resource checks), and
- ``to_clause()`` as a SQLAlchemy boolean expression (list queries).

Both readings come from the same object, so ``can_view`` and the list
filter can never drift apart.  Deletion visibility and publish visibility
are built by separate functions and joined with ``AllOf``.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, exists, false, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from blog_backend.models import Article, ArticleTag, Category, Tag
from blog_backend.roles import Role


# ---------------------------------------------------------------------------
# Predicate combinators
# ---------------------------------------------------------------------------

class Predicate:
    def matches(self, article) -> bool:
        raise NotImplementedError

    def to_clause(self) -> ColumnElement[bool]:
        raise NotImplementedError

    def __and__(self, other: Predicate) -> Predicate:
        return AllOf((self, other))

    def __or__(self, other: Predicate) -> Predicate:
        return AnyOf((self, other))


@dataclass(frozen=True)
class Always(Predicate):
    def matches(self, article) -> bool:
        return True

    def to_clause(self) -> ColumnElement[bool]:
        return true()


@dataclass(frozen=True)
class AllOf(Predicate):
    parts: tuple[Predicate, ...]

    def matches(self, article) -> bool:
        return all(p.matches(article) for p in self.parts)

    def to_clause(self) -> ColumnElement[bool]:
        if not self.parts:
            return true()
        return and_(*(p.to_clause() for p in self.parts))


@dataclass(frozen=True)
class AnyOf(Predicate):
    parts: tuple[Predicate, ...]

    def matches(self, article) -> bool:
        return any(p.matches(article) for p in self.parts)

    def to_clause(self) -> ColumnElement[bool]:
        if not self.parts:
            return false()
        return or_(*(p.to_clause() for p in self.parts))


@dataclass(frozen=True)
class NotDeleted(Predicate):
    def matches(self, article) -> bool:
        return not article.is_deleted

    def to_clause(self) -> ColumnElement[bool]:
        return Article.is_deleted.is_(False)


@dataclass(frozen=True)
class IsPublished(Predicate):
    def matches(self, article) -> bool:
        return bool(article.is_published)

    def to_clause(self) -> ColumnElement[bool]:
        return Article.is_published.is_(True)


@dataclass(frozen=True)
class OwnedBy(Predicate):
    user_id: int

    def matches(self, article) -> bool:
        return article.author_id == self.user_id

    def to_clause(self) -> ColumnElement[bool]:
        return Article.author_id == self.user_id


@dataclass(frozen=True)
class InCategory(Predicate):
    slug: str

    def matches(self, article) -> bool:
        return article.category is not None and article.category.slug == self.slug

    def to_clause(self) -> ColumnElement[bool]:
        return Article.category_id.in_(select(Category.id).where(Category.slug == self.slug))


@dataclass(frozen=True)
class HasTag(Predicate):
    """Exact tag-slug match through the join table; deleted tags never match."""

    slug: str

    def matches(self, article) -> bool:
        return any(
            at.tag is not None and not at.tag.is_deleted and at.tag.slug == self.slug
            for at in article.article_tags
        )

    def to_clause(self) -> ColumnElement[bool]:
        return exists(
            select(ArticleTag.id)
            .join(Tag, Tag.id == ArticleTag.tag_id)
            .where(
                ArticleTag.article_id == Article.id,
                Tag.slug == self.slug,
                Tag.is_deleted.is_(False),
            )
        )


@dataclass(frozen=True)
class KeywordMatch(Predicate):
    """Case-insensitive substring match on title OR content."""

    keyword: str

    def matches(self, article) -> bool:
        needle = self.keyword.lower()
        return needle in (article.title or "").lower() or needle in (article.content or "").lower()

    def to_clause(self) -> ColumnElement[bool]:
        return or_(
            Article.title.icontains(self.keyword, autoescape=True),
            Article.content.icontains(self.keyword, autoescape=True),
        )


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

def _coerce_role(role: Role | str | None) -> Role | None:
    return Role.parse(role) if role is not None else None


def deletion_visibility(role: Role | str | None, include_deleted: bool = False) -> Predicate:
    """Soft-deleted rows are only ever shown to privileged callers who ask for them."""
    resolved = _coerce_role(role)
    if include_deleted and resolved is not None and resolved.is_privileged:
        return Always()
    return NotDeleted()


def publish_visibility(role: Role | str | None, caller_id: int | None) -> Predicate:
    resolved = _coerce_role(role)
    if resolved is not None and resolved.is_privileged:
        return Always()
    if resolved is Role.AUTHOR and caller_id is not None:
        return OwnedBy(caller_id) | IsPublished()
    # USER, AUTHOR without an id, and anything unrecognised.
    return IsPublished()


def build_list_predicate(
    role: Role | str | None,
    caller_id: int | None,
    include_deleted: bool = False,
) -> Predicate:
    return AllOf(
        (
            deletion_visibility(role, include_deleted),
            publish_visibility(role, caller_id),
        )
    )


def can_view(article, role: Role | str | None, caller_id: int | None) -> bool:
    return build_list_predicate(role, caller_id, include_deleted=True).matches(article)


def can_modify(resource, role: Role | str | None, caller_id: int | None, owner_attr: str = "author_id") -> bool:
    """
    Owner or privileged role.  Publish state never grants write access.

    ``owner_attr`` names the ownership column (``author_id`` for articles,
    ``user_id`` for comments).
    """
    resolved = _coerce_role(role)
    if resolved is not None and resolved.is_privileged:
        return True
    return caller_id is not None and getattr(resource, owner_attr) == caller_id


def can_modify_article(article, role: Role | str | None, caller_id: int | None) -> bool:
    """
    Privileged role, or an AUTHOR-capable caller who owns the article.

    Ownership alone is not enough: an owner whose role has dropped to USER
    keeps read access to published work but can no longer change it.
    """
    resolved = _coerce_role(role)
    if resolved is None or not resolved.can_author:
        return False
    return can_modify(article, resolved, caller_id, owner_attr="author_id")
