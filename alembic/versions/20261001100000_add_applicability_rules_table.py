"""Add applicability_rules table and seed the default rules.

Revision ID: 20261001100000
Revises: 20261001000000
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20261001100000"
down_revision: Union[str, None] = "20261001000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    rules = op.create_table(
        "applicability_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("package_name", sa.String(length=512), nullable=True),
        sa.Column("package_ecosystem", sa.String(length=64), nullable=True),
        sa.Column("ghsa_id", sa.String(length=64), nullable=True),
        sa.Column("cve_id", sa.String(length=64), nullable=True),
        sa.Column("severity", sa.String(length=32), nullable=True),
        sa.Column("is_applicable", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("dismiss_reason", sa.String(length=32), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_rules_active_priority",
        "applicability_rules",
        ["active", "priority"],
        unique=False,
    )
    # The hono rule ships inactive: while active it overrides the built-in hono heuristics.
    op.bulk_insert(
        rules,
        [
            {
                "package_name": "hono",
                "package_ecosystem": "npm",
                "is_applicable": True,
                "reason": "Hono is our web framework - check if specific vulnerability applies",
                "dismiss_reason": None,
                "priority": 10,
                "active": False,
            },
            {
                "package_name": None,
                "package_ecosystem": None,
                "is_applicable": True,
                "reason": "no matching rule",
                "dismiss_reason": None,
                "priority": -1,
                "active": True,
            },
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_rules_active_priority", table_name="applicability_rules")
    op.drop_table("applicability_rules")
