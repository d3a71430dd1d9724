"""Initial alerts table for Dependabot/CodeQL/secret scanning alerts.

Revision ID: 20261001000000
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261001000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("github_alert_id", sa.Integer(), nullable=False),
        sa.Column("repo_name", sa.String(length=255), nullable=False),
        sa.Column("repo_full_name", sa.String(length=512), nullable=False),
        sa.Column("alert_type", sa.String(length=32), nullable=False, server_default="dependabot"),
        sa.Column("state", sa.String(length=32), nullable=False),
        sa.Column("severity", sa.String(length=32), nullable=True),
        sa.Column("package_ecosystem", sa.String(length=64), nullable=True),
        sa.Column("package_name", sa.String(length=512), nullable=True),
        sa.Column("dependency_scope", sa.String(length=32), nullable=True),
        sa.Column("manifest_path", sa.String(length=2048), nullable=True),
        sa.Column("vulnerable_version", sa.String(length=255), nullable=True),
        sa.Column("patched_version", sa.String(length=255), nullable=True),
        sa.Column("ghsa_id", sa.String(length=64), nullable=True),
        sa.Column("cve_id", sa.String(length=64), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("html_url", sa.String(length=2048), nullable=True),
        sa.Column("is_applicable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("applicability_reason", sa.Text(), nullable=True),
        sa.Column("auto_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_closed_reason", sa.Text(), nullable=True),
        sa.Column("dismissed_reason", sa.String(length=32), nullable=True),
        sa.Column("dismissed_comment", sa.Text(), nullable=True),
        sa.Column("pr_created", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pr_number", sa.Integer(), nullable=True),
        sa.Column("pr_url", sa.String(length=2048), nullable=True),
        sa.Column("github_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("github_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "first_seen_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "last_checked_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "alert_type IN ('dependabot', 'codeql', 'secret_scanning')",
            name="ck_alerts_alert_type",
        ),
        sa.CheckConstraint(
            "state IN ('open', 'dismissed', 'fixed', 'auto_dismissed')",
            name="ck_alerts_state",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "repo_full_name",
            "alert_type",
            "github_alert_id",
            name="uq_alerts_repo_type_alert_id",
        ),
    )
    op.create_index(op.f("ix_alerts_repo_full_name"), "alerts", ["repo_full_name"], unique=False)
    op.create_index(op.f("ix_alerts_state"), "alerts", ["state"], unique=False)
    op.create_index(op.f("ix_alerts_severity"), "alerts", ["severity"], unique=False)
    op.create_index(op.f("ix_alerts_is_applicable"), "alerts", ["is_applicable"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_alerts_is_applicable"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_severity"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_state"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_repo_full_name"), table_name="alerts")
    op.drop_table("alerts")
