"""Pydantic schemas for the health endpoint."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class LastScan(BaseModel):
    """Most recent scan run, as far as health checks care."""

    scan_type: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    success: bool | None = None


class HealthResponse(BaseModel):
    """GET /health: process, database and GitHub App readiness. No auth."""

    status: Literal["ok", "degraded"] = "ok"
    environment: str
    database: Literal["connected", "disconnected"]
    github: Literal["configured", "not_configured"] = Field(
        description="Whether the GitHub App settings needed for scans are present.",
    )
    scan_in_progress: bool = False
    last_scan: LastScan | None = None
