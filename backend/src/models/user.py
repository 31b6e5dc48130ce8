"""User model for editorial staff."""
from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """
    User model - editorial staff who author and move content through the workflow.

    Role names (e.g. "Writer", "Editor", "Admin") are supplied by the identity
    layer and stored as a plain list; the workflow engine only performs
    set-membership checks against them.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    @property
    def role_names(self) -> frozenset[str]:
        """Roles as an immutable set for intersection checks."""
        return frozenset(self.roles or [])
