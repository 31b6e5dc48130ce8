"""Shared pieces for content that accumulates workflow versions (posts, pages)."""
import copy
from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar, NamedTuple, Protocol

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

# Statuses the engine itself needs to recognise. Every other status is
# config-driven and only ever compared against the resolved workflow.
STATUS_DRAFT = "draft"
STATUS_APPROVED = "approved"
STATUS_PUBLISHED = "published"

# Publication status of the live record
PUBLICATION_DRAFT = "draft"
PUBLICATION_SCHEDULED = "scheduled"
PUBLICATION_PUBLISHED = "published"


class VersionableType(StrEnum):
    """Concrete owner kinds a content version can belong to."""

    POST = "post"
    PAGE = "page"


class OwnerKey(NamedTuple):
    """
    Typed polymorphic reference to a version's owner.

    Two keys are equal only when both the owner type and the id match, so a
    post and a page that happen to share an id never compare equal.
    """

    type: VersionableType
    id: int


class VersionableMixin:
    """
    Columns and snapshot helpers shared by every versionable owner.

    Subclasses must define:
    - versionable_type: the VersionableType stored on their versions
    - versionable_fields: live columns copied into a content snapshot

    Subclasses may define:
    - publish_required_fields: snapshot keys that must be non-empty to publish
    - has_taxonomy: True when the owner has categories/tags relationships

    The version pointers are deliberately not foreign keys: versions reference
    owners polymorphically, and a dangling pointer must be representable so the
    integrity checks can detect and repair it.
    """

    versionable_type: ClassVar[VersionableType]
    versionable_fields: ClassVar[tuple[str, ...]]
    publish_required_fields: ClassVar[tuple[str, ...]] = ()
    has_taxonomy: ClassVar[bool] = False

    draft_version_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    active_version_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    # Denormalized status of the version last created/transitioned, for filtering
    workflow_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=STATUS_DRAFT, index=True,
    )
    # Public publication status, kept separate from the workflow status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PUBLICATION_DRAFT, index=True,
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None,
    )

    @property
    def owner_key(self) -> OwnerKey:
        """Typed (type, id) reference used to match versions to this owner."""
        return OwnerKey(self.versionable_type, self.id)

    def get_post_type(self) -> str | None:
        """Sub-type used to pick a type-specific workflow. None for untyped owners."""
        return None

    def has_published_version(self) -> bool:
        """Check if the content currently has a live version."""
        return self.active_version_id is not None

    def mark_published(self, when: datetime) -> None:
        """Flag the live record as publicly visible."""
        self.status = PUBLICATION_PUBLISHED
        self.published_at = when

    def mark_unpublished(self) -> None:
        """Take the live record off the public site."""
        self.status = PUBLICATION_DRAFT
        self.published_at = None

    def build_content_snapshot(self) -> dict[str, Any]:
        """
        Capture the live versionable fields as a detached snapshot.

        Owners with taxonomy must have categories and tags loaded before this
        is called (the version service takes care of that).
        """
        snapshot = {field: copy.deepcopy(getattr(self, field)) for field in self.versionable_fields}
        if self.has_taxonomy:
            snapshot["category_ids"] = sorted(c.id for c in self.categories)
            snapshot["tag_ids"] = sorted(t.id for t in self.tags)
        return snapshot

    def apply_content_snapshot(self, snapshot: dict[str, Any]) -> list[str]:
        """
        Copy snapshot values back onto the live versionable fields.

        Keys missing from the snapshot (older snapshot shapes) leave the live
        value untouched. Returns the names of the fields that were applied.
        """
        applied = []
        for field in self.versionable_fields:
            if field in snapshot:
                setattr(self, field, copy.deepcopy(snapshot[field]))
                applied.append(field)
        return applied


class Versionable(Protocol):
    """Capability interface the workflow engine relies on for any owner."""

    id: int
    draft_version_id: int | None
    active_version_id: int | None
    workflow_status: str
    status: str
    published_at: datetime | None
    versionable_type: ClassVar[VersionableType]
    publish_required_fields: ClassVar[tuple[str, ...]]
    has_taxonomy: ClassVar[bool]

    @property
    def owner_key(self) -> OwnerKey:
        """Typed (type, id) reference."""
        ...

    def get_post_type(self) -> str | None:
        """Sub-type used for workflow resolution."""
        ...

    def build_content_snapshot(self) -> dict[str, Any]:
        """Snapshot of the live versionable fields."""
        ...

    def apply_content_snapshot(self, snapshot: dict[str, Any]) -> list[str]:
        """Write snapshot values back to the live fields."""
        ...

    def mark_published(self, when: datetime) -> None:
        """Flag the live record as public."""
        ...

    def mark_unpublished(self) -> None:
        """Take the live record off the public site."""
        ...
