"""
Scheduled copydesk submission task.

Moves draft posts out of draft once their scheduled_copydesk_at time has
passed. Designed to run as a cron job (e.g., every minute).

Usage:
    python -m tasks.scheduled_copydesk

Each due post's draft version is transitioned as the post's author, so the
author's roles gate the move like any manual submission. The target is
copydesk when the post's workflow has a draft -> copydesk edge, otherwise the
first configured edge out of draft (review, under the default workflow).
Every post is committed on its own; a post that fails is rolled back and
keeps its schedule for the next run.
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
from models.post import Post
from models.user import User
from models.versionable import STATUS_DRAFT, STATUS_PUBLISHED, OwnerKey, VersionableType
from services.exceptions import WorkflowError
from services.version_store import version_store
from services.workflow_config_service import WorkflowConfig, workflow_config_service
from services.workflow_service import workflow_service

logger = logging.getLogger(__name__)

STATUS_COPYDESK = "copydesk"
SCHEDULED_COPYDESK_COMMENT = "Auto-submitted via scheduled copydesk"


@dataclass
class ScheduledCopydeskStats:
    """Statistics from a scheduled copydesk run."""

    due: int = 0
    submitted: int = 0
    skipped: int = 0
    failed: int = 0
    failures: dict[int, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "due": self.due,
            "submitted": self.submitted,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def submission_target(config: WorkflowConfig) -> str:
    """Status a scheduled draft moves to under a workflow."""
    if config.edges(STATUS_DRAFT, STATUS_COPYDESK):
        return STATUS_COPYDESK
    for rule in config.transitions_from(STATUS_DRAFT):
        if rule.to_status != STATUS_PUBLISHED:
            return rule.to_status
    # No usable edge: let the transition report it as invalid
    return STATUS_COPYDESK


async def find_due_copydesk_posts(db: AsyncSession, now: datetime) -> list[Post]:
    """Non-deleted draft posts whose scheduled_copydesk_at is at or before now."""
    stmt = (
        select(Post)
        .where(
            Post.scheduled_copydesk_at.is_not(None),
            Post.scheduled_copydesk_at <= now,
            Post.workflow_status == STATUS_DRAFT,
            Post.deleted_at.is_(None),
        )
        .order_by(Post.scheduled_copydesk_at, Post.id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def submit_post(db: AsyncSession, post_id: int) -> str | None:
    """
    Submit one due post's draft version without committing.

    Returns:
        The status the draft moved to, or None when the post has no draft
        version or no author to act as.
    """
    post = await version_store.get_owner(db, OwnerKey(VersionableType.POST, post_id))
    version = await version_store.find(db, post.draft_version_id)
    if version is None or not version.belongs_to(post) or not version.is_draft():
        logger.warning("Post '%s' (#%s) has no draft version, skipping", post.title, post.id)
        return None

    author = await db.get(User, post.author_id) if post.author_id is not None else None
    if author is None:
        logger.warning("Post '%s' (#%s) has no author to submit as, skipping", post.title, post.id)
        return None

    actor = Actor(user_id=author.id, roles=author.role_names, source=RequestSource.SCHEDULER)
    config = await workflow_config_service.resolve_for(db, post)
    to_status = submission_target(config)
    await workflow_service.transition(
        db, version, to_status, actor, comment=SCHEDULED_COPYDESK_COMMENT,
    )
    post.scheduled_copydesk_at = None
    await db.flush()
    return to_status


async def submit_scheduled_posts(
    db: AsyncSession,
    now: datetime | None = None,
) -> ScheduledCopydeskStats:
    """
    Submit every due draft post, committing each one separately.

    Args:
        db: Database session.
        now: Cut-off time. Defaults to the current UTC time.

    Returns:
        ScheduledCopydeskStats with per-post failure reasons keyed by post id.
    """
    now = now or utcnow()
    stats = ScheduledCopydeskStats()

    # Rollbacks expire loaded posts, so only plain values are carried across posts
    due = [(post.id, post.title) for post in await find_due_copydesk_posts(db, now)]
    for post_id, title in due:
        stats.due += 1
        try:
            to_status = await submit_post(db, post_id)
            await db.commit()
        except (WorkflowError, SQLAlchemyError) as e:
            await db.rollback()
            logger.warning("Failed to submit post '%s' (#%s): %s", title, post_id, e)
            stats.failed += 1
            stats.failures[post_id] = str(e)
            continue

        if to_status is None:
            stats.skipped += 1
            continue

        stats.submitted += 1
        logger.info("Submitted scheduled post '%s' (#%s) to %s", title, post_id, to_status)

    return stats


async def run_scheduled_copydesk(
    db: AsyncSession | None = None,
    now: datetime | None = None,
) -> ScheduledCopydeskStats:
    """
    Entry point for the scheduled copydesk task.

    Args:
        db: Database session. If None, creates one from the session factory.
        now: Cut-off time. Defaults to the current UTC time.
    """
    logger.info("Starting scheduled copydesk submission")

    if db is not None:
        stats = await submit_scheduled_posts(db, now)
    else:
        async with get_session_factory()() as session:
            stats = await submit_scheduled_posts(session, now)

    logger.info("Scheduled copydesk complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_scheduled_copydesk())


if __name__ == "__main__":
    main()
