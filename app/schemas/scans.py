"""Pydantic schemas for scan runs and their summaries."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ScanTrigger = Literal["scheduled", "manual", "webhook"]


class ScanSummary(BaseModel):
    """Result of one orchestrator run; returned by POST /scan whether or not repositories failed."""

    scan_id: int | None = None
    trigger: ScanTrigger
    success: bool
    repos_scanned: int = 0
    alerts_found: int = 0
    alerts_auto_closed: int = 0
    applicable_alerts: int = 0
    errors: list[str] = Field(
        default_factory=list,
        description="Per-repository / per-alert error messages (partial failure).",
    )


class ScanRunItem(BaseModel):
    """Stored scan audit record as exposed by GET /scans."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    scan_type: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    repos_scanned: int
    alerts_found: int
    alerts_auto_closed: int
    errors: list[str] | None = None
    success: bool | None = None
