"""Post model - articles and recipes moved through the editorial workflow."""
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin
from models.tag import post_categories, post_tags
from models.versionable import VersionableMixin, VersionableType

if TYPE_CHECKING:
    from models.tag import Category, Tag


class PostStatus(StrEnum):
    """Public publication status of a post (separate from its workflow status)."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"


class Post(Base, TimestampMixin, VersionableMixin):
    """Post model - stores the live copy of a post plus its version pointers."""

    __tablename__ = "posts"

    versionable_type: ClassVar[VersionableType] = VersionableType.POST
    versionable_fields: ClassVar[tuple[str, ...]] = (
        "title",
        "subtitle",
        "excerpt",
        "content",
        "meta_title",
        "meta_description",
        "featured_media_id",
    )
    publish_required_fields: ClassVar[tuple[str, ...]] = ("category_ids", "tag_ids")
    has_taxonomy: ClassVar[bool] = True

    id: Mapped[int] = mapped_column(primary_key=True)
    author_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    post_type: Mapped[str] = mapped_column(String(30), nullable=False, default="article")

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    subtitle: Mapped[str | None] = mapped_column(String(500), nullable=True)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    featured_media_id: Mapped[int | None] = mapped_column(nullable=True)

    scheduled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True,
    )
    # When the draft is automatically submitted out of draft by the copydesk task
    scheduled_copydesk_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True,
    )
    # Soft delete only: versions are retained for as long as the post exists
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True,
    )

    categories: Mapped[list["Category"]] = relationship(
        secondary=post_categories,
        back_populates="posts",
    )
    tags: Mapped[list["Tag"]] = relationship(
        secondary=post_tags,
        back_populates="posts",
    )

    def get_post_type(self) -> str | None:
        """Posts pick type-specific workflows by post_type (article, recipe, ...)."""
        return self.post_type or None

    def mark_published(self, when: datetime) -> None:
        """Publishing consumes any pending schedule."""
        super().mark_published(when)
        self.scheduled_at = None
