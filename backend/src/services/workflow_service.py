"""Service layer for moving content versions through the editorial workflow."""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.request_context import Actor
from models.base import utcnow
from models.content_version import ContentVersion
from models.post import Post, PostStatus
from models.tag import Category, Tag
from models.versionable import STATUS_PUBLISHED, Versionable
from services.exceptions import (
    IntegrityViolationError,
    InvalidTransitionError,
    OwnerNotFoundError,
    PublishRequirementsError,
    StaleVersionError,
    UnauthorizedTransitionError,
)
from services.version_store import version_store
from services.workflow_config_service import (
    TransitionRule,
    WorkflowConfig,
    workflow_config_service,
)

logger = logging.getLogger(__name__)


class WorkflowService:
    """
    Config-driven state machine over content versions.

    Every mutating method runs inside the caller's transaction and only
    flushes. If anything raises, rolling back the caller's session leaves the
    version, its transition records and the owner's pointers untouched.
    """

    async def _owner_of(
        self,
        db: AsyncSession,
        version: ContentVersion,
        lock: bool = False,
    ) -> Versionable:
        if lock:
            await db.flush()
        try:
            return await version_store.get_owner(db, version.owner_key, lock=lock)
        except OwnerNotFoundError as e:
            raise IntegrityViolationError(
                f"Version {version.id} belongs to a missing "
                f"{version.versionable_type} ({version.versionable_id})",
            ) from e

    @staticmethod
    def _allowed_rules(
        config: WorkflowConfig,
        rules: list[TransitionRule],
        actor: Actor,
    ) -> list[TransitionRule]:
        """Rules the actor may take. Publishing also needs a publish role."""
        allowed = []
        for rule in rules:
            if not rule.allows(actor.roles):
                continue
            if rule.to_status == STATUS_PUBLISHED and not actor.has_any_role(config.publish_roles):
                continue
            allowed.append(rule)
        return allowed

    async def available_transitions(
        self,
        db: AsyncSession,
        version: ContentVersion,
        actor: Actor,
    ) -> list[TransitionRule]:
        """
        Outgoing edges from the version's current status that the actor may take.

        Args:
            db: Database session.
            version: The version being inspected.
            actor: Identity whose roles are checked.

        Returns:
            Matching transition rules in configured order.
        """
        owner = await self._owner_of(db, version)
        config = await workflow_config_service.resolve_for(db, owner)
        return self._allowed_rules(
            config, config.transitions_from(version.workflow_status), actor,
        )

    async def can_transition(
        self,
        db: AsyncSession,
        version: ContentVersion,
        to_status: str,
        actor: Actor,
    ) -> bool:
        available = await self.available_transitions(db, version, actor)
        return any(rule.to_status == to_status for rule in available)

    async def transition(
        self,
        db: AsyncSession,
        version: ContentVersion,
        to_status: str,
        actor: Actor,
        comment: str | None = None,
    ) -> ContentVersion:
        """
        Move a version along one edge of its owner's workflow.

        The owner and version rows are locked and re-read before validation,
        and the status change itself is a compare-and-set on the status that
        was validated, so a concurrent transition of the same version makes
        this call fail instead of overwriting it.

        Publishing activates the version (deactivating any other version of
        the owner), copies its snapshot onto the live owner and marks the
        owner published. Leaving published while active reverses that.

        Args:
            db: Database session.
            version: Version to move.
            to_status: Target workflow status.
            actor: Identity performing the transition.
            comment: Optional comment stored on the transition record.

        Returns:
            The updated version.

        Raises:
            InvalidTransitionError: No (from, to) edge in the resolved workflow.
            UnauthorizedTransitionError: The actor holds none of the edge's roles,
                or none of the publish roles when publishing.
            PublishRequirementsError: Publishing a snapshot missing required content.
            StaleVersionError: The version's status changed concurrently.
            IntegrityViolationError: The version's owner no longer exists.
        """
        owner = await self._owner_of(db, version, lock=True)
        version = await version_store.get(db, version.id, lock=True)
        from_status = version.workflow_status

        config = await workflow_config_service.resolve_for(db, owner)
        rules = config.edges(from_status, to_status)
        if not rules:
            raise InvalidTransitionError(from_status, to_status)

        if not self._allowed_rules(config, rules, actor):
            required = {role for rule in rules for role in rule.roles}
            if to_status == STATUS_PUBLISHED and any(rule.allows(actor.roles) for rule in rules):
                required = set(config.publish_roles)
            raise UnauthorizedTransitionError(to_status, frozenset(required))

        if to_status == STATUS_PUBLISHED:
            missing = version.missing_publish_fields(owner.publish_required_fields)
            if missing:
                raise PublishRequirementsError(missing)

        if not await version_store.set_status_if(db, version, from_status, to_status):
            raise StaleVersionError(version.id, from_status, to_status)

        if to_status == STATUS_PUBLISHED:
            await self._publish(db, owner, version, utcnow())
        elif from_status == STATUS_PUBLISHED:
            await self._unpublish(db, owner, version)

        await version_store.append_transition(
            db, version, from_status, to_status, performed_by=actor.user_id, comment=comment,
        )

        if to_status != STATUS_PUBLISHED:
            owner.draft_version_id = version.id
        owner.workflow_status = to_status
        await db.flush()

        logger.info(
            "Version %s of %s %s: %s -> %s (user=%s, source=%s)",
            version.id, owner.versionable_type.value, owner.id,
            from_status, to_status, actor.user_id, actor.source.value,
        )
        return version

    async def make_version_live(
        self,
        db: AsyncSession,
        version: ContentVersion,
        actor: Actor,
        comment: str | None = None,
    ) -> ContentVersion:
        """
        Switch which version of already-published content is live.

        Used to roll the public content back (or forward) to another version
        without walking it through the workflow again. The version becomes
        published and active, both owner pointers move to it and a transition
        record is appended.

        Raises:
            UnauthorizedTransitionError: The actor holds none of the publish roles.
            InvalidTransitionError: The owner has no live version.
            PublishRequirementsError: The snapshot lacks required content.
            StaleVersionError: The version's status changed concurrently.
        """
        owner = await self._owner_of(db, version, lock=True)
        version = await version_store.get(db, version.id, lock=True)
        from_status = version.workflow_status

        config = await workflow_config_service.resolve_for(db, owner)
        if not actor.has_any_role(config.publish_roles):
            raise UnauthorizedTransitionError(STATUS_PUBLISHED, frozenset(config.publish_roles))
        if not owner.has_published_version():
            raise InvalidTransitionError(
                from_status,
                STATUS_PUBLISHED,
                "This operation is only available for published content",
            )

        missing = version.missing_publish_fields(owner.publish_required_fields)
        if missing:
            raise PublishRequirementsError(missing)

        if from_status != STATUS_PUBLISHED and not await version_store.set_status_if(
            db, version, from_status, STATUS_PUBLISHED,
        ):
            raise StaleVersionError(version.id, from_status, STATUS_PUBLISHED)

        await self._go_live(db, owner, version)
        await version_store.append_transition(
            db, version, from_status, STATUS_PUBLISHED,
            performed_by=actor.user_id, comment=comment,
        )
        owner.draft_version_id = version.id
        owner.workflow_status = STATUS_PUBLISHED
        await db.flush()

        logger.info(
            "Made version %s live for %s %s (user=%s)",
            version.id, owner.versionable_type.value, owner.id, actor.user_id,
        )
        return version

    async def can_edit_published(
        self,
        db: AsyncSession,
        owner: Versionable,
        actor: Actor,
    ) -> bool:
        """Whether the actor may edit content that currently has a live version."""
        if not owner.has_published_version():
            return True
        config = await workflow_config_service.resolve_for(db, owner)
        return actor.has_any_role(config.edit_published_roles)

    async def schedule_publish(
        self,
        db: AsyncSession,
        post: Post,
        when: datetime,
        actor: Actor,
    ) -> Post:
        """
        Queue a post's draft version for automatic publishing.

        The draft must already be publishable (approved, with the required
        content); the scheduled publish task performs the actual transition.

        Raises:
            UnauthorizedTransitionError: The actor holds none of the publish roles.
            InvalidTransitionError: The draft version is not approved.
            PublishRequirementsError: The draft snapshot lacks required content.
        """
        post = await version_store.lock_owner(db, post)
        config = await workflow_config_service.resolve_for(db, post)
        if not actor.has_any_role(config.publish_roles):
            raise UnauthorizedTransitionError(STATUS_PUBLISHED, frozenset(config.publish_roles))

        draft = await version_store.find(db, post.draft_version_id)
        if draft is None or not draft.belongs_to(post) or not draft.is_approved():
            raise InvalidTransitionError(
                draft.workflow_status if draft else None,
                STATUS_PUBLISHED,
                "Only an approved draft version can be scheduled",
            )
        missing = draft.missing_publish_fields(post.publish_required_fields)
        if missing:
            raise PublishRequirementsError(missing)

        post.status = PostStatus.SCHEDULED.value
        post.scheduled_at = when
        await db.flush()
        logger.info("Scheduled post %s for %s (user=%s)", post.id, when.isoformat(), actor.user_id)
        return post

    async def get_version_history(
        self,
        db: AsyncSession,
        owner: Versionable,
    ) -> list[ContentVersion]:
        """An owner's versions, newest first, with transition records loaded."""
        return await version_store.list_versions(db, owner.owner_key, with_transitions=True)

    @staticmethod
    def compare_versions(
        version_a: ContentVersion,
        version_b: ContentVersion,
    ) -> dict[str, dict[str, Any]]:
        """
        Snapshot keys whose values differ between two versions.

        Returns:
            {key: {"old": value in a, "new": value in b}}; keys missing from
            one side compare as None.
        """
        snapshot_a = version_a.content_snapshot or {}
        snapshot_b = version_b.content_snapshot or {}
        keys = list(snapshot_a) + [key for key in snapshot_b if key not in snapshot_a]

        diff = {}
        for key in keys:
            old_value = snapshot_a.get(key)
            new_value = snapshot_b.get(key)
            if old_value != new_value:
                diff[key] = {"old": old_value, "new": new_value}
        return diff

    async def _go_live(
        self,
        db: AsyncSession,
        owner: Versionable,
        version: ContentVersion,
    ) -> None:
        """Activate the version and copy its snapshot onto the live owner."""
        await version_store.activate(db, version)
        owner.active_version_id = version.id
        owner.apply_content_snapshot(version.content_snapshot)
        if owner.has_taxonomy:
            await self._apply_taxonomy(db, owner, version.content_snapshot)

    async def _publish(
        self,
        db: AsyncSession,
        owner: Versionable,
        version: ContentVersion,
        now: datetime,
    ) -> None:
        await self._go_live(db, owner, version)
        owner.mark_published(now)

    async def _unpublish(
        self,
        db: AsyncSession,
        owner: Versionable,
        version: ContentVersion,
    ) -> None:
        """Take a version off the site if it is the live one."""
        if version.is_active:
            await version_store.deactivate(db, version)
        if owner.active_version_id == version.id:
            owner.active_version_id = None
            owner.mark_unpublished()

    @staticmethod
    async def _apply_taxonomy(
        db: AsyncSession,
        owner: Versionable,
        snapshot: dict[str, Any],
    ) -> None:
        """Sync the owner's categories and tags to the ids in a snapshot."""
        await db.refresh(owner, attribute_names=["categories", "tags"])
        if "category_ids" in snapshot:
            ids = snapshot["category_ids"] or []
            result = await db.execute(select(Category).where(Category.id.in_(ids)))
            owner.categories = list(result.scalars().all())
        if "tag_ids" in snapshot:
            ids = snapshot["tag_ids"] or []
            result = await db.execute(select(Tag).where(Tag.id.in_(ids)))
            owner.tags = list(result.scalars().all())


workflow_service = WorkflowService()
