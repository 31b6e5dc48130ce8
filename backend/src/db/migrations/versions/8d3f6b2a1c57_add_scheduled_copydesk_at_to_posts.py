"""
add_scheduled_copydesk_at_to_posts.

Revision ID: 8d3f6b2a1c57
Revises: 5c1e7a9b2d40
Create Date: 2026-10-20 10:12:41.208315
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8d3f6b2a1c57"
down_revision: str | Sequence[str] | None = "5c1e7a9b2d40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add scheduled_copydesk_at to posts for timed submission of drafts."""
    op.add_column(
        "posts",
        sa.Column("scheduled_copydesk_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        op.f("ix_posts_scheduled_copydesk_at"), "posts", ["scheduled_copydesk_at"], unique=False,
    )


def downgrade() -> None:
    """Remove scheduled_copydesk_at from posts."""
    op.drop_index(op.f("ix_posts_scheduled_copydesk_at"), table_name="posts")
    op.drop_column("posts", "scheduled_copydesk_at")
