"""Pydantic request/response schemas."""

from app.schemas.alerts import (
    AlertItem,
    AlertsResponse,
    Classification,
    DependabotAlertPayload,
    DismissReason,
    DismissRequest,
    DismissResponse,
    Repository,
    SeverityLevel,
)
from app.schemas.health import HealthResponse, LastScan
from app.schemas.rules import RuleCreate, RuleResponse
from app.schemas.scans import ScanRunItem, ScanSummary, ScanTrigger
from app.schemas.stats import RepoCount, SeverityCount, StatsResponse

__all__ = [
    "AlertItem",
    "AlertsResponse",
    "Classification",
    "DependabotAlertPayload",
    "DismissReason",
    "DismissRequest",
    "DismissResponse",
    "HealthResponse",
    "LastScan",
    "RepoCount",
    "Repository",
    "RuleCreate",
    "RuleResponse",
    "ScanRunItem",
    "ScanSummary",
    "ScanTrigger",
    "SeverityCount",
    "SeverityLevel",
    "StatsResponse",
]
