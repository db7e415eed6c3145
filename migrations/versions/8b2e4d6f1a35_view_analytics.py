"""view_analytics

Add deck_views and page_views.

Revision ID: 8b2e4d6f1a35
Revises: 3f1c9a7d2b10
Create Date: 2026-10-19 14:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b2e4d6f1a35"
down_revision: str | None = "3f1c9a7d2b10"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "deck_views",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column(
            "deck_id",
            sa.VARCHAR(21),
            sa.ForeignKey("deck_files.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "share_link_id",
            sa.VARCHAR(21),
            sa.ForeignKey("share_links.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("viewer_email", sa.String(255), nullable=True),
        sa.Column("viewer_id", sa.String(64), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_duration", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pages_viewed", sa.JSON(), nullable=False),
        sa.Column("total_pages", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
    )
    op.create_index("ix_deck_views_deck_id", "deck_views", ["deck_id"])
    op.create_index("ix_deck_views_share_link_id", "deck_views", ["share_link_id"])

    op.create_table(
        "page_views",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column(
            "view_id",
            sa.VARCHAR(21),
            sa.ForeignKey("deck_views.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("page_number", sa.Integer(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("exited_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_page_views_view_id", "page_views", ["view_id"])


def downgrade() -> None:
    op.drop_table("page_views")
    op.drop_table("deck_views")
