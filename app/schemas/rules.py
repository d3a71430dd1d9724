"""Pydantic schemas for applicability rule administration."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.alerts import DismissReason, SeverityLevel


class RuleCreate(BaseModel):
    """Body for POST /rules. Match fields left null match any alert."""

    model_config = ConfigDict(extra="forbid")

    package_name: str | None = None
    package_ecosystem: str | None = None
    ghsa_id: str | None = None
    cve_id: str | None = None
    severity: SeverityLevel | None = None
    is_applicable: bool = Field(..., description="Verdict when the rule matches.")
    reason: str = Field(..., min_length=1, max_length=2000)
    dismiss_reason: DismissReason | None = None
    priority: int = Field(default=0, ge=-1_000_000, le=1_000_000)
    active: bool = True

    @field_validator("package_name", "package_ecosystem", "ghsa_id", "cve_id", mode="before")
    @classmethod
    def blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason must be non-empty")
        return v.strip()


class RuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    package_name: str | None = None
    package_ecosystem: str | None = None
    ghsa_id: str | None = None
    cve_id: str | None = None
    severity: str | None = None
    is_applicable: bool
    reason: str
    dismiss_reason: str | None = None
    priority: int
    active: bool
    created_at: datetime | None = None
