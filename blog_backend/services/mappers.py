"""
Article aggregate mapping: ORM rows -> response schemas.

Pure functions with no session access.  They only read relations that the
caller eager-loaded; anything missing maps to ``None`` (or an empty list)
instead of raising.
"""
from __future__ import annotations

from typing import Iterable

from blog_backend.models import Article, Category, Comment, Tag, User, UserProfile
from blog_backend.schemas import (
    ArticleResponse,
    CategoryResponse,
    CommentResponse,
    TagResponse,
    UserProfileResponse,
    UserSummary,
)
from blog_backend.services.comment_tree import CommentNode


def profile_to_response(profile: UserProfile | None) -> UserProfileResponse | None:
    if profile is None:
        return None
    return UserProfileResponse(
        id=profile.id,
        display_name=profile.display_name,
        bio=profile.bio,
        profile_image_url=profile.profile_image_url,
        created_at=profile.created_at,
    )


def user_to_summary(user: User | None) -> UserSummary | None:
    if user is None:
        return None
    return UserSummary(
        id=user.id,
        username=user.username,
        profile=profile_to_response(user.profile),
    )


def category_to_response(category: Category | None) -> CategoryResponse | None:
    if category is None:
        return None
    return CategoryResponse(
        id=category.id,
        name=category.name,
        slug=category.slug,
        created_at=category.created_at,
    )


def tag_to_response(tag: Tag) -> TagResponse:
    return TagResponse(id=tag.id, name=tag.name, slug=tag.slug, created_at=tag.created_at)


def live_tags(article: Article) -> list[Tag]:
    """Tags of *article* in association order, skipping dangling and soft-deleted ones."""
    return [
        at.tag
        for at in (article.article_tags or [])
        if at.tag is not None and not at.tag.is_deleted
    ]


def article_to_response(article: Article) -> ArticleResponse:
    return ArticleResponse(
        id=article.id,
        title=article.title,
        slug=article.slug,
        content=article.content,
        is_published=bool(article.is_published),
        is_deleted=bool(article.is_deleted),
        published_at=article.published_at,
        created_at=article.created_at,
        author=user_to_summary(article.author),
        category=category_to_response(article.category),
        tags=[tag_to_response(t) for t in live_tags(article)],
    )


def comment_to_response(comment: Comment) -> CommentResponse:
    """Single comment without replies (create / update responses)."""
    return CommentResponse(
        id=comment.id,
        content=comment.content,
        is_deleted=bool(comment.is_deleted),
        created_at=comment.created_at,
        user=user_to_summary(comment.user),
        children=[],
    )


def comment_tree_to_response(roots: Iterable[CommentNode]) -> list[CommentResponse]:
    """
    Convert an assembled forest into nested responses.

    Iterative so that very deep reply chains cannot hit the recursion limit.
    """
    top: list[CommentResponse] = []
    stack: list[tuple[CommentNode, list[CommentResponse]]] = [
        (node, top) for node in reversed(list(roots))
    ]
    while stack:
        node, siblings = stack.pop()
        response = comment_to_response(node.comment)
        siblings.append(response)
        stack.extend((child, response.children) for child in reversed(node.children))
    return top
