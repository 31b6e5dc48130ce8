"""Service layer for creating, updating, restoring and auditing content versions."""
import copy
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from models.content_version import ContentVersion
from models.versionable import (
    PUBLICATION_PUBLISHED,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    Versionable,
)
from services.exceptions import IntegrityViolationError, OwnerNotFoundError
from services.version_store import version_store

logger = logging.getLogger(__name__)

INITIAL_VERSION_NOTE = "Initial version"
UPDATED_VERSION_NOTE = "Updated from previous version"
REPAIRED_VERSION_NOTE = "Auto-generated initial version"


class IssueKind(StrEnum):
    """Ways an owner's version bookkeeping can be inconsistent."""

    NO_VERSIONS = "no_versions"
    DANGLING = "dangling"  # pointer references a version that does not exist
    FOREIGN_OWNER = "foreign_owner"  # pointer references another owner's version
    NOT_ACTIVE = "not_active"  # active pointer references a version not flagged active
    UNTRACKED_ACTIVE = "untracked_active"  # a version is flagged active but not pointed at


@dataclass
class IntegrityIssue:
    """One detected inconsistency on an owner."""

    kind: IssueKind
    pointer: str | None = None  # "draft_version_id" / "active_version_id"
    version_id: int | None = None

    def describe(self) -> str:
        if self.kind == IssueKind.NO_VERSIONS:
            return "No versions exist"
        if self.kind == IssueKind.UNTRACKED_ACTIVE:
            return f"Version {self.version_id} is flagged active but not referenced"
        return f"Invalid {self.pointer} ({self.version_id}): {self.kind.value}"


class VersionService:
    """Owner-facing operations that add versions or rewrite the current draft."""

    async def build_content_snapshot(self, db: AsyncSession, owner: Versionable) -> dict[str, Any]:
        """
        Snapshot the owner's live fields.

        Taxonomy relationships are reloaded from the database first so the
        snapshot reflects what is persisted, not a stale in-memory collection.
        """
        if owner.has_taxonomy:
            await db.flush()
            await db.refresh(owner, attribute_names=["categories", "tags"])
        return owner.build_content_snapshot()

    async def create_version(
        self,
        db: AsyncSession,
        owner: Versionable,
        snapshot: dict[str, Any] | None = None,
        note: str | None = None,
        created_by: int | None = None,
    ) -> ContentVersion:
        """
        Create a new draft version for an owner.

        The owner row is locked for the rest of the transaction so concurrent
        creations for the same owner get consecutive version numbers.

        Args:
            db: Database session.
            owner: The post or page to version.
            snapshot: Content to store. Defaults to a snapshot of the live fields.
            note: Optional version note, also used as the initial transition comment.
            created_by: Acting user. Defaults to the owner's author, if it has one.

        Returns:
            The new version (status draft, inactive).
        """
        owner = await version_store.lock_owner(db, owner)
        if snapshot is None:
            snapshot = await self.build_content_snapshot(db, owner)
        else:
            snapshot = copy.deepcopy(snapshot)
        if created_by is None:
            created_by = getattr(owner, "author_id", None)

        version = await version_store.add_version(
            db,
            owner,
            snapshot=snapshot,
            created_by=created_by,
            note=note,
            workflow_status=STATUS_DRAFT,
        )
        await version_store.append_transition(
            db, version, None, STATUS_DRAFT, performed_by=created_by, comment=note,
        )

        owner.draft_version_id = version.id
        owner.workflow_status = STATUS_DRAFT
        await db.flush()

        logger.info(
            "Created version %s (#%s) for %s %s",
            version.id, version.version_number, owner.versionable_type.value, owner.id,
        )
        return version

    async def update_draft_version(
        self,
        db: AsyncSession,
        owner: Versionable,
        snapshot: dict[str, Any],
        created_by: int | None = None,
    ) -> ContentVersion:
        """
        Overwrite the owner's draft snapshot in place, or start a new version.

        The draft pointer is only trusted when it resolves to an existing
        version that is still in draft and belongs to this exact owner (type
        and id). Anything else falls back to create_version, so a corrupted
        pointer never leads to writing into another owner's version.

        Returns:
            The updated draft, or the newly created version.
        """
        owner = await version_store.lock_owner(db, owner)
        pointer = owner.draft_version_id
        draft = await version_store.find(db, pointer)

        if draft is not None and draft.is_draft() and draft.belongs_to(owner):
            draft.content_snapshot = copy.deepcopy(snapshot)
            await db.flush()
            return draft

        if pointer is not None and (draft is None or not draft.belongs_to(owner)):
            logger.warning(
                "%s %s has an invalid draft_version_id (%s), creating a new version",
                owner.versionable_type.value.title(), owner.id, pointer,
            )

        return await self.create_version(
            db,
            owner,
            snapshot=snapshot,
            note=UPDATED_VERSION_NOTE if pointer is not None else INITIAL_VERSION_NOTE,
            created_by=created_by,
        )

    async def restore_from_version(
        self,
        db: AsyncSession,
        version: ContentVersion,
        created_by: int | None = None,
    ) -> ContentVersion:
        """
        Create a new draft carrying an older version's content.

        History is never rewritten: the restored content gets the next version
        number and the old version is left untouched.
        """
        try:
            owner = await version_store.get_owner(db, version.owner_key)
        except OwnerNotFoundError as e:
            raise IntegrityViolationError(
                f"Version {version.id} belongs to a missing {version.versionable_type}",
            ) from e
        return await self.create_version(
            db,
            owner,
            snapshot=version.content_snapshot,
            note=f"Restored from version {version.version_number}",
            created_by=created_by,
        )

    async def check_pointers(self, db: AsyncSession, owner: Versionable) -> list[IntegrityIssue]:
        """
        Detect inconsistent version bookkeeping on an owner.

        Checks that draft/active pointers resolve to versions of this owner,
        that the active pointer matches the version flagged active, and that
        the owner has at least one version.
        """
        issues: list[IntegrityIssue] = []

        if await version_store.count_versions(db, owner.owner_key) == 0:
            issues.append(IntegrityIssue(IssueKind.NO_VERSIONS))

        for pointer in ("draft_version_id", "active_version_id"):
            version_id = getattr(owner, pointer)
            if version_id is None:
                continue
            version = await version_store.find(db, version_id)
            if version is None:
                issues.append(IntegrityIssue(IssueKind.DANGLING, pointer, version_id))
            elif not version.belongs_to(owner):
                issues.append(IntegrityIssue(IssueKind.FOREIGN_OWNER, pointer, version_id))
            elif pointer == "active_version_id" and not version.is_active:
                issues.append(IntegrityIssue(IssueKind.NOT_ACTIVE, pointer, version_id))

        for active in await version_store.active(db, owner.owner_key):
            if active.id != owner.active_version_id:
                issues.append(IntegrityIssue(IssueKind.UNTRACKED_ACTIVE, None, active.id))

        return issues

    async def repair_pointers(
        self,
        db: AsyncSession,
        owner: Versionable,
        issues: list[IntegrityIssue],
    ) -> ContentVersion | None:
        """
        Correct the issues found by check_pointers.

        An owner with no versions gets an initial version built from its live
        content (published and active if the owner is live). Otherwise bad
        pointers are re-pointed at the versions actually found for the owner:
        the latest draft (or latest version) and the version flagged active.

        Returns:
            The created initial version, or None if only pointers changed.
        """
        if not issues:
            return None
        owner = await version_store.lock_owner(db, owner)
        key = owner.owner_key

        if any(issue.kind == IssueKind.NO_VERSIONS for issue in issues):
            is_live = owner.status == PUBLICATION_PUBLISHED
            workflow_status = STATUS_PUBLISHED if is_live else (owner.workflow_status or STATUS_DRAFT)
            created_by = getattr(owner, "author_id", None)
            version = await version_store.add_version(
                db,
                owner,
                snapshot=await self.build_content_snapshot(db, owner),
                created_by=created_by,
                note=REPAIRED_VERSION_NOTE,
                workflow_status=workflow_status,
            )
            await version_store.append_transition(
                db, version, None, workflow_status,
                performed_by=created_by, comment=REPAIRED_VERSION_NOTE,
            )
            owner.draft_version_id = version.id
            if is_live:
                await version_store.activate(db, version)
                owner.active_version_id = version.id
            else:
                owner.active_version_id = None
            await db.flush()
            logger.info(
                "Created initial version %s for %s %s",
                version.id, key.type.value, key.id,
            )
            return version

        bad_pointers = {issue.pointer for issue in issues if issue.pointer}
        if "draft_version_id" in bad_pointers:
            actual_draft = await version_store.latest_draft(db, key) or await version_store.latest(db, key)
            owner.draft_version_id = actual_draft.id if actual_draft else None

        untracked = any(issue.kind == IssueKind.UNTRACKED_ACTIVE for issue in issues)
        if "active_version_id" in bad_pointers or untracked:
            flagged = await version_store.active(db, key)
            owner.active_version_id = flagged[0].id if flagged else None

        await db.flush()
        logger.info("Re-pointed versions for %s %s", key.type.value, key.id)
        return None


version_service = VersionService()
