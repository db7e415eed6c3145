"""initial_schema

Create users, deck_files and share_links.

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

access_level = sa.Enum("PUBLIC", "RESTRICTED", "WHITELISTED", name="accesslevel")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "deck_files",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column(
            "user_id",
            sa.VARCHAR(21),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_deck_files_user_id", "deck_files", ["user_id"])

    op.create_table(
        "share_links",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("link_identifier", sa.String(50), nullable=True),
        sa.Column(
            "user_id",
            sa.VARCHAR(21),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "deck_id",
            sa.VARCHAR(21),
            sa.ForeignKey("deck_files.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("access_level", access_level, nullable=False),
        sa.Column("recipient_email", sa.String(255), nullable=True),
        sa.Column("allowed_emails", sa.JSON(), nullable=True),
        sa.Column("allowed_domains", sa.JSON(), nullable=True),
        sa.Column("is_downloadable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_code", sa.String(128), nullable=True),
        sa.Column("verification_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "link_identifier", name="uq_share_links_user_identifier"
        ),
    )
    op.create_index("ix_share_links_token", "share_links", ["token"], unique=True)
    op.create_index("ix_share_links_user_id", "share_links", ["user_id"])
    op.create_index("ix_share_links_deck_id", "share_links", ["deck_id"])
    op.create_index("ix_share_links_expires_at", "share_links", ["expires_at"])


def downgrade() -> None:
    op.drop_table("share_links")
    op.drop_table("deck_files")
    op.drop_table("users")
    access_level.drop(op.get_bind(), checkfirst=True)
