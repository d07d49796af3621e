"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-01 00:00:00.000000

Owner registry and journal entries. Both are written by the auth and
entries CRUD layers; analytics only reads them.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_index("ix_users_id", "users", ["id"])

    # --- entries ---
    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("mood_label", sa.String(32), nullable=True),
        sa.Column("mood_score", sa.Float(), nullable=True),
        sa.Column("tags", sa.Text(), nullable=True, comment="JSON array of tag strings"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entries_id", "entries", ["id"])
    op.create_index("ix_entries_user_day", "entries", ["user_id", "day"])


def downgrade() -> None:
    op.drop_table("entries")
    op.drop_table("users")
