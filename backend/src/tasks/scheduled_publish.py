"""
Scheduled auto-publish task.

Publishes posts whose scheduled_at time has passed. Designed to run as a cron
job (e.g., every minute).

Usage:
    python -m tasks.scheduled_publish

Each due post's draft version (or latest version, if the draft pointer is
unusable) goes through the normal workflow transition to published, acting
as the configured system identity. Every post is committed on its own: a
post that cannot be published is rolled back, logged and counted as failed;
it stays scheduled and is retried on the next run.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.request_context import Actor, RequestSource
from db.session import get_session_factory
from models.base import utcnow
from models.post import Post, PostStatus
from models.versionable import STATUS_PUBLISHED, OwnerKey, VersionableType
from services.exceptions import WorkflowError
from services.version_store import version_store
from services.workflow_service import workflow_service

logger = logging.getLogger(__name__)

SCHEDULED_PUBLISH_COMMENT = "Published on schedule"


@dataclass
class ScheduledPublishStats:
    """Statistics from a scheduled publish run."""

    due: int = 0
    published: int = 0
    skipped: int = 0
    failed: int = 0
    failures: dict[int, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "due": self.due,
            "published": self.published,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def system_actor() -> Actor:
    """Identity scheduled jobs act as, from SYSTEM_USER_ID / SYSTEM_ROLES."""
    settings = get_settings()
    return Actor(
        user_id=settings.system_user_id,
        roles=settings.system_roles,
        source=RequestSource.SCHEDULER,
    )


async def find_due_posts(db: AsyncSession, now: datetime) -> list[Post]:
    """Scheduled, non-deleted posts whose scheduled_at is at or before now."""
    stmt = (
        select(Post)
        .where(
            Post.status == PostStatus.SCHEDULED.value,
            Post.scheduled_at.is_not(None),
            Post.scheduled_at <= now,
            Post.deleted_at.is_(None),
        )
        .order_by(Post.scheduled_at, Post.id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def publish_post(db: AsyncSession, post_id: int, actor: Actor) -> bool:
    """
    Publish one due post's draft version without committing.

    Returns:
        False when the post has no version to publish.
    """
    post = await version_store.get_owner(db, OwnerKey(VersionableType.POST, post_id))
    version = await version_store.find(db, post.draft_version_id)
    if version is None or not version.belongs_to(post):
        version = await version_store.latest(db, post.owner_key)
    if version is None:
        return False

    await workflow_service.transition(
        db, version, STATUS_PUBLISHED, actor, comment=SCHEDULED_PUBLISH_COMMENT,
    )
    return True


async def publish_scheduled_posts(
    db: AsyncSession,
    actor: Actor,
    now: datetime | None = None,
) -> ScheduledPublishStats:
    """
    Publish every due post, committing each one separately.

    A post that fails with a workflow or database error is rolled back and
    counted; posts published before it stay committed.

    Args:
        db: Database session.
        actor: Identity recorded on the publish transitions.
        now: Cut-off time. Defaults to the current UTC time.

    Returns:
        ScheduledPublishStats with per-post failure reasons keyed by post id.
    """
    now = now or utcnow()
    stats = ScheduledPublishStats()

    # Rollbacks expire loaded posts, so only plain values are carried across posts
    due = [(post.id, post.title) for post in await find_due_posts(db, now)]
    for post_id, title in due:
        stats.due += 1
        try:
            published = await publish_post(db, post_id, actor)
            await db.commit()
        except (WorkflowError, SQLAlchemyError) as e:
            await db.rollback()
            logger.warning("Failed to publish post '%s' (#%s): %s", title, post_id, e)
            stats.failed += 1
            stats.failures[post_id] = str(e)
            continue

        if not published:
            logger.warning("Post '%s' (#%s) has no version, skipping", title, post_id)
            stats.skipped += 1
            continue

        stats.published += 1
        logger.info("Published scheduled post '%s' (#%s)", title, post_id)

    return stats


async def run_scheduled_publish(
    db: AsyncSession | None = None,
    actor: Actor | None = None,
    now: datetime | None = None,
) -> ScheduledPublishStats:
    """
    Entry point for the scheduled publish task.

    Args:
        db: Database session. If None, creates one from the session factory.
        actor: Publishing identity. Defaults to the configured system actor.
        now: Cut-off time. Defaults to the current UTC time.
    """
    actor = actor or system_actor()
    logger.info("Starting scheduled publish (source=%s)", actor.source.value)

    if db is not None:
        stats = await publish_scheduled_posts(db, actor, now)
    else:
        async with get_session_factory()() as session:
            stats = await publish_scheduled_posts(session, actor, now)

    logger.info("Scheduled publish complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_scheduled_publish())


if __name__ == "__main__":
    main()
