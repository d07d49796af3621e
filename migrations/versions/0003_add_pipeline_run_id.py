"""add run_id to pipeline_runs

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-18

Each acquisition of the run guard stamps a fresh run_id. Release only
clears the guard when the caller still holds that id, so a run that was
taken over as stale cannot clear its successor's claim.
"""
from alembic import op
import sqlalchemy as sa

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("pipeline_runs", sa.Column("run_id", sa.String(36), nullable=True))


def downgrade() -> None:
    op.drop_column("pipeline_runs", "run_id")
