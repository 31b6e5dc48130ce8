"""Page model - standalone pages (about, contact) that share the editorial workflow."""
from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin
from models.versionable import VersionableMixin, VersionableType


class Page(Base, TimestampMixin, VersionableMixin):
    """Page model - no post type, no taxonomy, no publish requirements."""

    __tablename__ = "pages"

    versionable_type: ClassVar[VersionableType] = VersionableType.PAGE
    versionable_fields: ClassVar[tuple[str, ...]] = (
        "title",
        "content",
        "meta_title",
        "meta_description",
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None,
    )
