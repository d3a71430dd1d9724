"""Add scan_history table (one audit row per scan run).

Revision ID: 20261001200000
Revises: 20261001100000
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "20261001200000"
down_revision: Union[str, None] = "20261001100000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "scan_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scan_type", sa.String(length=32), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("repos_scanned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("alerts_found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("alerts_auto_closed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("prs_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=True),
        sa.CheckConstraint(
            "scan_type IN ('scheduled', 'manual', 'webhook')",
            name="ck_scan_history_scan_type",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_scan_history_started_at"),
        "scan_history",
        ["started_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_scan_history_started_at"), table_name="scan_history")
    op.drop_table("scan_history")
