"""Persistence helpers for content versions, their owners, and transition records."""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.content_version import ContentVersion
from models.page import Page
from models.post import Post
from models.versionable import STATUS_DRAFT, OwnerKey, Versionable, VersionableType
from models.workflow_transition import WorkflowTransition
from services.exceptions import (
    IntegrityViolationError,
    OwnerNotFoundError,
    VersionNotFoundError,
)

logger = logging.getLogger(__name__)

# Map VersionableType values to owner model classes.
MODEL_MAP: dict[str, type[Post] | type[Page]] = {
    VersionableType.POST: Post,
    VersionableType.PAGE: Page,
}


def _owner_filter(key: OwnerKey) -> tuple:
    return (
        ContentVersion.versionable_type == key.type.value,
        ContentVersion.versionable_id == key.id,
    )


class VersionStore:
    """
    Query and write primitives shared by the version and workflow services.

    Every method only flushes; committing belongs to the caller's unit of work.
    """

    def model_for(self, versionable_type: VersionableType | str) -> type[Post] | type[Page]:
        """Resolve the owner model class for a versionable type."""
        model = MODEL_MAP.get(versionable_type)
        if model is None:
            raise IntegrityViolationError(f"Unknown versionable type: {versionable_type}")
        return model

    async def get_owner(
        self,
        db: AsyncSession,
        key: OwnerKey,
        lock: bool = False,
    ) -> Versionable:
        """
        Load the owner a version key points at.

        Args:
            db: Database session.
            key: Typed owner reference.
            lock: Take a row lock on the owner. Used to serialize version
                numbering and activation per owner.

        Raises:
            OwnerNotFoundError: If the owner does not exist.
        """
        model = self.model_for(key.type)
        stmt = select(model).where(model.id == key.id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        owner = (await db.execute(stmt)).scalar_one_or_none()
        if owner is None:
            raise OwnerNotFoundError(key.type.value, key.id)
        return owner

    async def lock_owner(self, db: AsyncSession, owner: Versionable) -> Versionable:
        """
        Re-read an owner with a row lock and refreshed column values.

        Pending changes are flushed first so the refresh cannot discard them.
        """
        await db.flush()
        return await self.get_owner(db, owner.owner_key, lock=True)

    async def get(
        self,
        db: AsyncSession,
        version_id: int,
        lock: bool = False,
    ) -> ContentVersion:
        """
        Get a version by id.

        Raises:
            VersionNotFoundError: If the version does not exist.
        """
        stmt = select(ContentVersion).where(ContentVersion.id == version_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        version = (await db.execute(stmt)).scalar_one_or_none()
        if version is None:
            raise VersionNotFoundError(version_id)
        return version

    async def get_with_transitions(self, db: AsyncSession, version_id: int) -> ContentVersion:
        """Get a version by id with its transition records loaded."""
        stmt = (
            select(ContentVersion)
            .where(ContentVersion.id == version_id)
            .options(selectinload(ContentVersion.transitions))
            .execution_options(populate_existing=True)
        )
        version = (await db.execute(stmt)).scalar_one_or_none()
        if version is None:
            raise VersionNotFoundError(version_id)
        return version

    async def find(self, db: AsyncSession, version_id: int | None) -> ContentVersion | None:
        """Get a version by id, or None when the id is empty or dangling."""
        if version_id is None:
            return None
        return await db.get(ContentVersion, version_id)

    async def list_versions(
        self,
        db: AsyncSession,
        key: OwnerKey,
        with_transitions: bool = False,
    ) -> list[ContentVersion]:
        """All versions of an owner, newest (highest version number) first."""
        stmt = (
            select(ContentVersion)
            .where(*_owner_filter(key))
            .order_by(ContentVersion.version_number.desc())
        )
        if with_transitions:
            # Transition rows are appended directly, so reload the collections
            stmt = stmt.options(selectinload(ContentVersion.transitions)).execution_options(
                populate_existing=True,
            )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def latest(self, db: AsyncSession, key: OwnerKey) -> ContentVersion | None:
        """The owner's highest-numbered version."""
        stmt = (
            select(ContentVersion)
            .where(*_owner_filter(key))
            .order_by(ContentVersion.version_number.desc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def active(self, db: AsyncSession, key: OwnerKey) -> list[ContentVersion]:
        """Versions flagged active. More than one means the data is inconsistent."""
        stmt = (
            select(ContentVersion)
            .where(*_owner_filter(key), ContentVersion.is_active.is_(True))
            .order_by(ContentVersion.version_number.desc())
        )
        return list((await db.execute(stmt)).scalars().all())

    async def latest_draft(self, db: AsyncSession, key: OwnerKey) -> ContentVersion | None:
        """The owner's highest-numbered version still in draft status."""
        stmt = (
            select(ContentVersion)
            .where(*_owner_filter(key), ContentVersion.workflow_status == STATUS_DRAFT)
            .order_by(ContentVersion.version_number.desc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def max_version_number(self, db: AsyncSession, key: OwnerKey) -> int:
        """Highest version number in use for the owner (0 if none)."""
        stmt = select(func.max(ContentVersion.version_number)).where(*_owner_filter(key))
        return (await db.scalar(stmt)) or 0

    async def next_version_number(self, db: AsyncSession, key: OwnerKey) -> int:
        """
        Next version number for an owner.

        Callers must hold the owner row lock so concurrent creations cannot
        read the same maximum.
        """
        return await self.max_version_number(db, key) + 1

    async def count_versions(self, db: AsyncSession, key: OwnerKey) -> int:
        stmt = select(func.count()).select_from(ContentVersion).where(*_owner_filter(key))
        return (await db.scalar(stmt)) or 0

    async def add_version(
        self,
        db: AsyncSession,
        owner: Versionable,
        snapshot: dict,
        created_by: int | None,
        note: str | None,
        workflow_status: str,
    ) -> ContentVersion:
        """Insert a new version numbered max+1 for the owner."""
        key = owner.owner_key
        version = ContentVersion(
            versionable_type=key.type.value,
            versionable_id=key.id,
            version_number=await self.next_version_number(db, key),
            content_snapshot=snapshot,
            workflow_status=workflow_status,
            is_active=False,
            created_by=created_by,
            version_note=note,
        )
        db.add(version)
        await db.flush()
        return version

    async def append_transition(
        self,
        db: AsyncSession,
        version: ContentVersion,
        from_status: str | None,
        to_status: str,
        performed_by: int | None,
        comment: str | None = None,
    ) -> WorkflowTransition:
        """Append one audit record. Transition rows are never modified afterwards."""
        transition = WorkflowTransition(
            content_version_id=version.id,
            from_status=from_status,
            to_status=to_status,
            performed_by=performed_by,
            comment=comment,
        )
        db.add(transition)
        await db.flush()
        return transition

    async def list_transitions(
        self,
        db: AsyncSession,
        version_id: int,
    ) -> list[WorkflowTransition]:
        """Transitions of a version in the order they were recorded."""
        stmt = (
            select(WorkflowTransition)
            .where(WorkflowTransition.content_version_id == version_id)
            .order_by(WorkflowTransition.id)
        )
        return list((await db.execute(stmt)).scalars().all())

    async def set_status_if(
        self,
        db: AsyncSession,
        version: ContentVersion,
        expected_status: str,
        new_status: str,
    ) -> bool:
        """
        Compare-and-set a version's workflow status.

        The UPDATE only matches while the stored status still equals
        expected_status, so two requests racing on the same edge cannot both
        apply it.

        Returns:
            True if this call changed the status, False if it had already moved.
        """
        await db.flush()
        result = await db.execute(
            update(ContentVersion)
            .where(
                ContentVersion.id == version.id,
                ContentVersion.workflow_status == expected_status,
            )
            .values(workflow_status=new_status)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            return False
        await db.refresh(version)
        return True

    async def activate(self, db: AsyncSession, version: ContentVersion) -> None:
        """
        Make version the owner's only active version.

        Other active versions are cleared first so the one-active index is
        never violated mid-statement.
        """
        await db.flush()
        await db.execute(
            update(ContentVersion)
            .where(
                *_owner_filter(version.owner_key),
                ContentVersion.id != version.id,
                ContentVersion.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch"),
        )
        version.is_active = True
        await db.flush()
        await db.refresh(version)

    async def deactivate(self, db: AsyncSession, version: ContentVersion) -> None:
        version.is_active = False
        await db.flush()


version_store = VersionStore()
