"""
Article tag synchronisation.

``sync_article_tags`` reconciles the ``article_tags`` rows of one article
with a desired set of tag ids, touching only the difference.  Every
requested id is checked against live tags before anything is written, so a
rejected request leaves the existing associations exactly as they were.

Two concurrent syncs of the same article are not serialised; the unique
``(article_id, tag_id)`` constraint stops duplicate rows and the last
writer's set wins.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend.models import ArticleTag, Tag
from blog_backend.outcomes import ServiceResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagDelta:
    to_add: frozenset[int] = field(default_factory=frozenset)
    to_remove: frozenset[int] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def compute_tag_delta(current: Iterable[int], desired: Iterable[int]) -> TagDelta:
    current_set = frozenset(current)
    desired_set = frozenset(desired)
    return TagDelta(to_add=desired_set - current_set, to_remove=current_set - desired_set)


async def validate_tag_ids(db: AsyncSession, tag_ids: Iterable[int]) -> ServiceResult[frozenset[int]]:
    """
    De-duplicate *tag_ids* and confirm each one names a live tag.

    Returns the de-duplicated set, or a validation failure listing every id
    that is unknown or soft-deleted.
    """
    wanted = frozenset(tag_ids)
    if not wanted:
        return ServiceResult.ok(wanted)

    result = await db.execute(
        select(Tag.id).where(Tag.id.in_(sorted(wanted)), Tag.is_deleted.is_(False))
    )
    live = frozenset(result.scalars().all())
    missing = sorted(wanted - live)
    if missing:
        return ServiceResult.validation(
            "Invalid tag ids (unknown or deleted): " + ", ".join(str(i) for i in missing)
        )
    return ServiceResult.ok(wanted)


async def apply_tag_delta(
    db: AsyncSession,
    article_id: int,
    desired_tag_ids: frozenset[int],
    actor_id: int | None,
) -> TagDelta:
    """Write the difference between the stored and desired tag sets.  No validation."""
    result = await db.execute(select(ArticleTag.tag_id).where(ArticleTag.article_id == article_id))
    delta = compute_tag_delta(result.scalars().all(), desired_tag_ids)
    if delta.is_empty:
        return delta

    if delta.to_remove:
        await db.execute(
            delete(ArticleTag).where(
                ArticleTag.article_id == article_id,
                ArticleTag.tag_id.in_(sorted(delta.to_remove)),
            )
        )
    for tag_id in sorted(delta.to_add):
        db.add(ArticleTag(article_id=article_id, tag_id=tag_id, created_by_id=actor_id))
    await db.flush()

    logger.info(
        "Synced tags for article %s: +%s -%s",
        article_id,
        sorted(delta.to_add),
        sorted(delta.to_remove),
    )
    return delta


async def sync_article_tags(
    db: AsyncSession,
    article_id: int,
    desired_tag_ids: Iterable[int],
    actor_id: int | None,
) -> ServiceResult[TagDelta]:
    validated = await validate_tag_ids(db, desired_tag_ids)
    if not validated.success:
        return validated.cast()
    delta = await apply_tag_delta(db, article_id, validated.value, actor_id)
    return ServiceResult.ok(delta)
