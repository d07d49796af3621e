"""add mood analytics tables

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-01

Derived tables written by the batch aggregator, the real-time streak
updater and the insight generator, plus the run-guard record. Every table
has a natural unique key so all writes can be single-statement upserts.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def _user_fk() -> sa.Column:
    return sa.Column(
        "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )


def upgrade() -> None:
    # --- daily_mood_aggregates ---
    op.create_table(
        "daily_mood_aggregates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("entries_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_mood_score", sa.Float(), nullable=True),
        sa.Column("dominant_mood", sa.String(32), nullable=True),
        sa.Column("mood_counts", sa.Text(), nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "day", name="uq_daily_mood_user_day"),
    )
    op.create_index("ix_daily_mood_aggregates_user_id", "daily_mood_aggregates", ["user_id"])
    op.create_index("ix_daily_mood_aggregates_day", "daily_mood_aggregates", ["day"])

    # --- tags_mood_stats ---
    op.create_table(
        "tags_mood_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("tag", sa.String(128), nullable=False),
        sa.Column("occurrences", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_mood_score", sa.Float(), nullable=True),
        sa.Column("last_seen", sa.Date(), nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "tag", name="uq_tags_mood_user_tag"),
    )
    op.create_index("ix_tags_mood_stats_user_id", "tags_mood_stats", ["user_id"])

    # --- writing_streaks ---
    op.create_table(
        "writing_streaks",
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_written_date", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # --- mood_trends_cache ---
    op.create_table(
        "mood_trends_cache",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("range_start", sa.Date(), nullable=False),
        sa.Column("range_end", sa.Date(), nullable=False),
        sa.Column("granularity", sa.String(16), nullable=False, server_default="day"),
        sa.Column("data", sa.Text(), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "range_start", "range_end", "granularity",
            name="uq_mood_trends_user_range",
        ),
    )
    op.create_index("ix_mood_trends_cache_user_id", "mood_trends_cache", ["user_id"])

    # --- mood_insights ---
    op.create_table(
        "mood_insights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("date_from", sa.Date(), nullable=False),
        sa.Column("date_to", sa.Date(), nullable=False),
        sa.Column("insight_type", sa.String(32), nullable=False, server_default="auto_generated"),
        sa.Column("insights", sa.Text(), nullable=False),
        sa.Column("generated_by", sa.String(128), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "date_from", "date_to", "insight_type",
            name="uq_mood_insights_user_range_type",
        ),
    )
    op.create_index("ix_mood_insights_user_id", "mood_insights", ["user_id"])

    # --- pipeline_runs ---
    op.create_table(
        "pipeline_runs",
        sa.Column("name", sa.String(64), primary_key=True),
        sa.Column("is_running", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_status", sa.String(16), nullable=True),
        sa.Column("last_window_start", sa.Date(), nullable=True),
        sa.Column("last_window_end", sa.Date(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("pipeline_runs")
    op.drop_table("mood_insights")
    op.drop_table("mood_trends_cache")
    op.drop_table("writing_streaks")
    op.drop_table("tags_mood_stats")
    op.drop_table("daily_mood_aggregates")
