"""ORM model for Dependabot (and future) security alerts tracked per repository."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from app.models.base import Base

ALERT_TYPES = ("dependabot", "codeql", "secret_scanning")
ALERT_STATES = ("open", "dismissed", "fixed", "auto_dismissed")


class Alert(Base):
    """
    One vulnerability finding on one repository.

    Unique on (repo_full_name, alert_type, github_alert_id): re-ingesting the same alert
    refreshes state and verdict instead of inserting a new row. Rows are never deleted;
    closure is a state transition.
    """

    __tablename__ = "alerts"
    __table_args__ = (
        UniqueConstraint(
            "repo_full_name",
            "alert_type",
            "github_alert_id",
            name="uq_alerts_repo_type_alert_id",
        ),
        CheckConstraint(
            "alert_type IN ('dependabot', 'codeql', 'secret_scanning')",
            name="ck_alerts_alert_type",
        ),
        CheckConstraint(
            "state IN ('open', 'dismissed', 'fixed', 'auto_dismissed')",
            name="ck_alerts_state",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    github_alert_id = Column(Integer, nullable=False)
    repo_name = Column(String(255), nullable=False)
    repo_full_name = Column(String(512), nullable=False, index=True)
    alert_type = Column(String(32), nullable=False, default="dependabot")
    state = Column(String(32), nullable=False, index=True)
    severity = Column(String(32), nullable=True, index=True)

    package_ecosystem = Column(String(64), nullable=True)
    package_name = Column(String(512), nullable=True)
    dependency_scope = Column(String(32), nullable=True)
    manifest_path = Column(String(2048), nullable=True)
    vulnerable_version = Column(String(255), nullable=True)
    patched_version = Column(String(255), nullable=True)

    ghsa_id = Column(String(64), nullable=True)
    cve_id = Column(String(64), nullable=True)
    summary = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    html_url = Column(String(2048), nullable=True)

    is_applicable = Column(Boolean, nullable=False, default=True, index=True)
    applicability_reason = Column(Text, nullable=True)

    auto_closed = Column(Boolean, nullable=False, default=False)
    auto_closed_at = Column(DateTime(timezone=True), nullable=True)
    auto_closed_reason = Column(Text, nullable=True)

    # Set by an operator override (POST /alerts/.../dismiss).
    dismissed_reason = Column(String(32), nullable=True)
    dismissed_comment = Column(Text, nullable=True)

    # Remediation PR tracking; populated by a future PR workflow.
    pr_created = Column(Boolean, nullable=False, default=False)
    pr_number = Column(Integer, nullable=True)
    pr_url = Column(String(2048), nullable=True)

    github_created_at = Column(DateTime(timezone=True), nullable=True)
    github_updated_at = Column(DateTime(timezone=True), nullable=True)
    first_seen_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    last_checked_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
