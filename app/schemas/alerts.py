"""Pydantic schemas for upstream Dependabot alert payloads, classifications, and stored alerts."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Reusable severity levels for validation and type safety across schemas.
SeverityLevel = Literal["critical", "high", "medium", "low"]

SEVERITY_VALUES: frozenset[str] = frozenset({"critical", "high", "medium", "low"})

# Most severe first; used for ordering listings.
SEVERITY_ORDER: tuple[str, ...] = ("critical", "high", "medium", "low")

AlertState = Literal["open", "dismissed", "fixed", "auto_dismissed"]

AlertType = Literal["dependabot", "codeql", "secret_scanning"]

# Reason codes accepted by the upstream dismissal endpoint.
DismissReason = Literal[
    "fix_started",
    "inaccurate",
    "no_bandwidth",
    "not_used",
    "tolerable_risk",
]

DISMISS_REASON_VALUES: frozenset[str] = frozenset(
    {"fix_started", "inaccurate", "no_bandwidth", "not_used", "tolerable_risk"}
)


class AlertPackage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ecosystem: str = ""
    name: str = ""


class AlertDependency(BaseModel):
    model_config = ConfigDict(extra="ignore")

    package: AlertPackage = Field(default_factory=AlertPackage)
    manifest_path: str | None = None
    scope: Literal["runtime", "development"] | None = None


class SecurityAdvisory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ghsa_id: str = ""
    cve_id: str | None = None
    summary: str = ""
    description: str = ""
    severity: SeverityLevel = "low"

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: object) -> object:
        # GitHub reports "moderate" on some advisories.
        if isinstance(v, str):
            s = v.strip().lower()
            return "medium" if s == "moderate" else s
        return v


class PatchedVersion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    identifier: str


class SecurityVulnerability(BaseModel):
    model_config = ConfigDict(extra="ignore")

    vulnerable_version_range: str | None = None
    first_patched_version: PatchedVersion | None = None


class DependabotAlertPayload(BaseModel):
    """Open Dependabot alert as returned by GET /repos/{owner}/{repo}/dependabot/alerts."""

    model_config = ConfigDict(extra="ignore")

    number: int
    state: AlertState = "open"
    dependency: AlertDependency = Field(default_factory=AlertDependency)
    security_advisory: SecurityAdvisory = Field(default_factory=SecurityAdvisory)
    security_vulnerability: SecurityVulnerability = Field(
        default_factory=SecurityVulnerability
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None
    html_url: str | None = None

    @property
    def package_name(self) -> str:
        return self.dependency.package.name

    @property
    def package_ecosystem(self) -> str:
        return self.dependency.package.ecosystem

    @property
    def scope(self) -> str | None:
        return self.dependency.scope

    @property
    def severity(self) -> str:
        return self.security_advisory.severity


class Repository(BaseModel):
    """Organization repository as returned by GET /orgs/{org}/repos."""

    model_config = ConfigDict(extra="ignore")

    name: str
    full_name: str
    private: bool = False
    default_branch: str | None = None


class Classification(BaseModel):
    """Applicability verdict for one alert."""

    applicable: bool
    reason: str = Field(..., min_length=1)
    dismiss_reason: DismissReason | None = None


class AlertItem(BaseModel):
    """Stored alert row as exposed by GET /alerts."""

    model_config = ConfigDict(from_attributes=True)

    repo_full_name: str
    github_alert_id: int
    alert_type: str
    state: str
    severity: str | None = None
    package_ecosystem: str | None = None
    package_name: str | None = None
    summary: str | None = None
    is_applicable: bool
    applicability_reason: str | None = None
    ghsa_id: str | None = None
    cve_id: str | None = None
    auto_closed: bool = False
    auto_closed_at: datetime | None = None
    first_seen_at: datetime | None = None
    last_checked_at: datetime | None = None


class AlertsResponse(BaseModel):
    """Response for GET /alerts."""

    count: int
    alerts: list[AlertItem]


class DismissRequest(BaseModel):
    """Body for POST /alerts/{repo}/{alert_number}/dismiss."""

    reason: DismissReason = Field(..., description="Upstream dismissal reason code.")
    comment: str = Field(
        default="",
        max_length=280,
        description="Free-text comment; the bot prefix is added automatically.",
    )


class DismissResponse(BaseModel):
    success: bool
    repo_full_name: str
    alert_number: int
