"""Setting model - site-wide key/value configuration stored in the database."""
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class Setting(Base, TimestampMixin):
    """
    Site setting keyed by a dotted name.

    Workflow overrides are stored here as JSON objects under:
    - workflow.post_type.<post_type>   e.g. workflow.post_type.recipe
    - workflow.type.<versionable_type> e.g. workflow.type.page
    - workflow.default
    """

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
