"""Pydantic schemas for aggregate alert statistics."""

from pydantic import BaseModel, Field


class SeverityCount(BaseModel):
    severity: str | None
    count: int


class RepoCount(BaseModel):
    repo_full_name: str
    count: int


class StatsResponse(BaseModel):
    """Response for GET /stats. Breakdowns cover open, applicable alerts."""

    total_open: int = 0
    applicable_open: int = 0
    auto_closed_total: int = 0
    by_severity: list[SeverityCount] = Field(default_factory=list)
    by_repo: list[RepoCount] = Field(default_factory=list)
