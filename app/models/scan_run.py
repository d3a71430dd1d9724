"""ORM model for the scan audit trail: one row per orchestrator execution."""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB

from app.models.base import Base


class ScanRun(Base):
    """
    Created when a scan starts and finalized when it completes or fails.

    errors: ordered list of per-repository / per-alert error messages (JSON array).
    """

    __tablename__ = "scan_history"
    __table_args__ = (
        CheckConstraint(
            "scan_type IN ('scheduled', 'manual', 'webhook')",
            name="ck_scan_history_scan_type",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    scan_type = Column(String(32), nullable=False)
    started_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)

    repos_scanned = Column(Integer, nullable=False, default=0)
    alerts_found = Column(Integer, nullable=False, default=0)
    alerts_auto_closed = Column(Integer, nullable=False, default=0)
    prs_created = Column(Integer, nullable=False, default=0)

    errors = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    success = Column(Boolean, nullable=True)
