"""ContentVersion model - immutable-content, mutable-status snapshots of versionable content."""
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin
from models.versionable import (
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    OwnerKey,
    VersionableType,
)

if TYPE_CHECKING:
    from models.versionable import Versionable
    from models.workflow_transition import WorkflowTransition


class ContentVersion(Base, TimestampMixin):
    """
    One numbered snapshot of an owner's content plus its workflow status.

    The owner reference is polymorphic (versionable_type + versionable_id, no
    DB FK). version_number is unique per owner and assigned as max+1 at
    creation. content_snapshot is written once at creation and only ever
    replaced wholesale while the version is still the owner's draft.

    is_active marks the live version; at most one per owner, enforced by the
    partial unique index below on top of the engine's own bookkeeping.
    """

    __tablename__ = "content_versions"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Owner reference (polymorphic - no DB FK constraint)
    versionable_type: Mapped[str] = mapped_column(String(20), nullable=False)
    versionable_id: Mapped[int] = mapped_column(nullable=False)

    version_number: Mapped[int] = mapped_column(nullable=False)
    content_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    workflow_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=STATUS_DRAFT,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    version_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    transitions: Mapped[list["WorkflowTransition"]] = relationship(
        back_populates="version",
        order_by="WorkflowTransition.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # Unique constraint prevents duplicate version numbers from races
        UniqueConstraint(
            "versionable_type",
            "versionable_id",
            "version_number",
            name="uq_content_versions_number",
        ),
        # Primary query: an owner's versions sorted by number
        Index(
            "ix_content_versions_owner",
            "versionable_type",
            "versionable_id",
            "version_number",
        ),
        # At most one active version per owner
        Index(
            "uq_content_versions_one_active",
            "versionable_type",
            "versionable_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    @property
    def owner_key(self) -> OwnerKey:
        """Typed reference to the owner this version belongs to."""
        return OwnerKey(VersionableType(self.versionable_type), self.versionable_id)

    def belongs_to(self, owner: "Versionable") -> bool:
        """True only when both the owner type and the owner id match."""
        return (
            self.versionable_type == owner.versionable_type.value
            and self.versionable_id == owner.id
        )

    def get_snapshot_field(self, key: str, default: Any = None) -> Any:
        """Get a single field from the content snapshot."""
        return (self.content_snapshot or {}).get(key, default)

    def is_draft(self) -> bool:
        return self.workflow_status == STATUS_DRAFT

    def is_approved(self) -> bool:
        return self.workflow_status == STATUS_APPROVED

    def is_published(self) -> bool:
        return self.workflow_status == STATUS_PUBLISHED

    def missing_publish_fields(self, required_fields: tuple[str, ...]) -> list[str]:
        """Required snapshot keys that are absent or empty."""
        snapshot = self.content_snapshot or {}
        return [field for field in required_fields if not snapshot.get(field)]

    def can_be_published(self, required_fields: tuple[str, ...] = ()) -> bool:
        """
        Check whether this version is ready to go live.

        The version must be approved and its snapshot must carry every field
        the owner type requires (for posts: at least one category and one tag).
        """
        return self.is_approved() and not self.missing_publish_fields(required_fields)
