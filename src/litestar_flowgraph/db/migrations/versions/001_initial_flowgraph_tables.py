"""Initial flowgraph tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _json() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create workflow config, process log and TTable tables."""
    op.create_table(
        "workflow_configs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flows_code", sa.String(length=64), nullable=False),
        sa.Column("document", _json(), nullable=False),
        sa.Column("processing_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sa_orm_sentinel", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_workflow_configs_flows_code",
        "workflow_configs",
        ["flows_code"],
        unique=True,
    )

    # Integer ids order the log; the newest id per source is the dependency state
    op.create_table(
        "workflow_process_logs",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), sa.Identity(), nullable=False),
        sa.Column("app_id", sa.String(length=255), nullable=False),
        sa.Column("ttable", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        sa.Column("workflow_id", sa.BigInteger(), nullable=False),
        sa.Column("edge_id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finish_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data", _json(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("processing_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_process_logs_app_id",
        "workflow_process_logs",
        ["app_id"],
    )
    op.create_index(
        "ix_process_logs_dependency",
        "workflow_process_logs",
        ["app_id", "workflow_id", "source_id"],
    )
    op.create_index(
        "ix_process_logs_app_processing_time",
        "workflow_process_logs",
        ["app_id", "processing_time"],
    )

    op.create_table(
        "workflow_ttables",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("app_id", sa.String(length=255), nullable=False),
        sa.Column("document", _json(), nullable=False),
        sa.Column("processing_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sa_orm_sentinel", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_workflow_ttables_app_id",
        "workflow_ttables",
        ["app_id"],
        unique=True,
    )


def downgrade() -> None:
    """Drop flowgraph tables."""
    op.drop_table("workflow_ttables")
    op.drop_table("workflow_process_logs")
    op.drop_table("workflow_configs")
