"""
Comment service: threaded comments on articles.

Comments are read as a flat, chronologically ordered list and handed to
``assemble_comment_tree``; the database is never walked recursively.
Deleting a comment redacts it: the row stays so replies keep their anchor,
but its content is replaced by ``REDACTED_CONTENT`` and it can no longer be
replied to or edited.  Redacted comments stay in the tree for every caller.
Permanent removal (admins only) takes the whole reply subtree with it.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_backend import audit
from blog_backend.auth import Caller
from blog_backend.models import Article, Comment, User
from blog_backend.outcomes import ServiceResult
from blog_backend.schemas import CommentCreate, CommentResponse, CommentUpdate
from blog_backend.services.comment_tree import assemble_comment_tree, find_node, iter_subtree
from blog_backend.services.mappers import comment_to_response, comment_tree_to_response
from blog_backend.services.references import load_active_user
from blog_backend.services.visibility import can_modify, can_view

logger = logging.getLogger(__name__)

REDACTED_CONTENT = "[deleted]"


def _with_user():
    return joinedload(Comment.user).joinedload(User.profile)


async def _fetch_comment(db: AsyncSession, comment_id: int) -> Comment | None:
    result = await db.execute(
        select(Comment)
        .where(Comment.id == comment_id)
        .options(_with_user())
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _load_visible_article(db: AsyncSession, caller: Caller, article_id: int) -> Article | None:
    article = await db.get(Article, article_id)
    if article is None or not can_view(article, caller.role, caller.user_id):
        return None
    return article


async def _article_visible(db: AsyncSession, caller: Caller, comment: Comment) -> bool:
    """Comments on an article the caller cannot see are reported as missing."""
    return await _load_visible_article(db, caller, comment.article_id) is not None


async def get_comments(db: AsyncSession, caller: Caller, article_id: int) -> ServiceResult[list[CommentResponse]]:
    """
    Return the reply forest for *article_id*.

    Articles the caller may not see are reported as not found, so comment
    threads never reveal drafts or deleted articles.
    """
    if await _load_visible_article(db, caller, article_id) is None:
        return ServiceResult.not_found("Article not found")

    result = await db.execute(
        select(Comment)
        .where(Comment.article_id == article_id)
        .options(_with_user())
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    comments = result.unique().scalars().all()
    return ServiceResult.ok(comment_tree_to_response(assemble_comment_tree(comments)))


async def create_comment(
    db: AsyncSession,
    caller: Caller,
    article_id: int,
    data: CommentCreate,
) -> ServiceResult[CommentResponse]:
    if data.article_id is not None and data.article_id != article_id:
        return ServiceResult.validation("Article ID in route does not match request body")

    user = await load_active_user(db, caller.user_id)
    if not user.success:
        return user.cast()

    article = await _load_visible_article(db, caller, article_id)
    if article is None:
        return ServiceResult.not_found("Article not found")
    if not article.is_published and not caller.role.is_privileged:
        return ServiceResult.validation("Article is not published")

    parent_id = data.parent_comment_id
    if parent_id is not None:
        parent = await db.get(Comment, parent_id)
        if parent is None or parent.article_id != article_id:
            return ServiceResult.validation("Parent comment not found")
        if parent.is_deleted:
            return ServiceResult.validation("Cannot reply to a deleted comment")

    comment = Comment(
        content=data.content,
        article_id=article_id,
        user_id=caller.user_id,
        parent_comment_id=parent_id,
        is_deleted=False,
    )
    db.add(comment)
    await db.flush()

    audit.record(
        "CREATE", "Comment", comment.id, caller.user_id,
        article_id=article_id, parent_comment_id=parent_id, content_length=len(data.content),
    )
    return ServiceResult.ok(comment_to_response(await _fetch_comment(db, comment.id)))


async def update_comment(
    db: AsyncSession,
    caller: Caller,
    comment_id: int,
    data: CommentUpdate,
) -> ServiceResult[CommentResponse]:
    """Edit the content of a live comment.  Its article and parent are fixed."""
    comment = await _fetch_comment(db, comment_id)
    if comment is None or not await _article_visible(db, caller, comment):
        return ServiceResult.not_found("Comment not found")
    if comment.is_deleted:
        return ServiceResult.validation("Deleted comments cannot be updated")
    if not can_modify(comment, caller.role, caller.user_id, owner_attr="user_id"):
        return ServiceResult.access_denied("You are not allowed to update this comment")

    provided = data.model_fields_set
    if "article_id" in provided and data.article_id != comment.article_id:
        return ServiceResult.validation("Changing articleId is not allowed")
    if "parent_comment_id" in provided and data.parent_comment_id != comment.parent_comment_id:
        return ServiceResult.validation("Changing parentCommentId is not allowed")

    if data.content is not None:
        comment.content = data.content
    comment.updated_by_id = caller.user_id
    await db.flush()
    return ServiceResult.ok(comment_to_response(await _fetch_comment(db, comment_id)))


async def soft_delete_comment(db: AsyncSession, caller: Caller, comment_id: int) -> ServiceResult[None]:
    """Redact a comment.  Repeating the call on a redacted comment is a no-op."""
    comment = await db.get(Comment, comment_id)
    if comment is None or not await _article_visible(db, caller, comment):
        return ServiceResult.not_found("Comment not found")
    if not can_modify(comment, caller.role, caller.user_id, owner_attr="user_id"):
        return ServiceResult.access_denied("You are not allowed to delete this comment")
    if comment.is_deleted and comment.content == REDACTED_CONTENT:
        return ServiceResult.ok(None)

    comment.is_deleted = True
    comment.content = REDACTED_CONTENT
    comment.updated_by_id = caller.user_id
    await db.flush()

    audit.record(
        "DELETE", "Comment", comment_id, caller.user_id,
        article_id=comment.article_id,
        comment_author_id=comment.user_id,
        self_delete=comment.user_id == caller.user_id,
    )
    return ServiceResult.ok(None)


async def hard_delete_comment(db: AsyncSession, caller: Caller, comment_id: int) -> ServiceResult[None]:
    """Permanently remove a comment and every reply beneath it (ADMIN/SUPERADMIN only)."""
    if not caller.role.is_privileged:
        return ServiceResult.access_denied("Access denied: only admins can permanently delete comments")

    comment = await db.get(Comment, comment_id)
    if comment is None:
        return ServiceResult.not_found("Comment not found")

    siblings = await db.execute(
        select(Comment.id, Comment.parent_comment_id)
        .where(Comment.article_id == comment.article_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    node = find_node(assemble_comment_tree(siblings.all()), comment_id)
    doomed = [n.id for n in iter_subtree(node)] if node is not None else [comment_id]

    await db.execute(delete(Comment).where(Comment.id.in_(doomed)))
    await db.flush()

    audit.record("HARD_DELETE", "Comment", comment_id, caller.user_id, removed=len(doomed))
    logger.info("Comment %s and %d repl(ies) permanently deleted", comment_id, len(doomed) - 1)
    return ServiceResult.ok(None)
