"""WorkflowTransition model - append-only audit trail of version status changes."""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utcnow

if TYPE_CHECKING:
    from models.content_version import ContentVersion


class WorkflowTransition(Base):
    """
    One status change of a content version.

    from_status is NULL for the record written when the version is created.
    Rows are never updated or deleted by the service layer.
    """

    __tablename__ = "workflow_transitions"

    id: Mapped[int] = mapped_column(primary_key=True)
    content_version_id: Mapped[int] = mapped_column(
        ForeignKey("content_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    performed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamp (only created_at - transition records are immutable)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    version: Mapped["ContentVersion"] = relationship(back_populates="transitions")

    __table_args__ = (
        Index("ix_workflow_transitions_version", "content_version_id", "id"),
    )

    def is_initial_creation(self) -> bool:
        return self.from_status is None

    @property
    def label(self) -> str:
        """Human-readable summary, e.g. "draft → review"."""
        if self.is_initial_creation():
            return f"Created as {self.to_status}"
        return f"{self.from_status} → {self.to_status}"
