"""Alert store: idempotent upsert of upstream alerts plus the queries behind listings and stats."""

import logging
from datetime import datetime, timezone

from sqlalchemy import case, false, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.models import Alert
from app.schemas.alerts import SEVERITY_ORDER, Classification, DependabotAlertPayload, Repository
from app.schemas.stats import RepoCount, SeverityCount, StatsResponse

logger = logging.getLogger(__name__)

DEFAULT_ALERT_TYPE = "dependabot"

# Columns refreshed when an already-known alert is observed again. Everything else
# (first_seen_at, auto_closed_at/auto_closed_reason, advisory text) keeps its original value.
REFRESHED_ON_CONFLICT = (
    "state",
    "is_applicable",
    "applicability_reason",
    "last_checked_at",
    "github_updated_at",
)

UNIQUE_KEY = ("repo_full_name", "alert_type", "github_alert_id")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert
    return pg_insert


def upsert_alert(
    db: Session,
    repo: Repository,
    alert: DependabotAlertPayload,
    classification: Classification,
    alert_type: str = DEFAULT_ALERT_TYPE,
    now: datetime | None = None,
) -> None:
    """
    Insert the alert or, if (repo, type, number) already exists, refresh its state,
    verdict and last_checked_at. Commits so the verdict is durable before any dismissal.
    """
    now = now or _utcnow()
    advisory = alert.security_advisory
    patched = alert.security_vulnerability.first_patched_version
    values = {
        "github_alert_id": alert.number,
        "repo_name": repo.name,
        "repo_full_name": repo.full_name,
        "alert_type": alert_type,
        "state": alert.state,
        "severity": advisory.severity,
        "package_ecosystem": alert.package_ecosystem or None,
        "package_name": alert.package_name or None,
        "dependency_scope": alert.scope,
        "manifest_path": alert.dependency.manifest_path,
        "vulnerable_version": alert.security_vulnerability.vulnerable_version_range,
        "patched_version": patched.identifier if patched else None,
        "ghsa_id": advisory.ghsa_id or None,
        "cve_id": advisory.cve_id,
        "summary": advisory.summary,
        "description": advisory.description,
        "html_url": alert.html_url,
        "is_applicable": classification.applicable,
        "applicability_reason": classification.reason,
        "auto_closed": False,
        "pr_created": False,
        "github_created_at": alert.created_at,
        "github_updated_at": alert.updated_at,
        "first_seen_at": now,
        "last_checked_at": now,
    }
    insert = _insert_for(db)
    stmt = insert(Alert).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(UNIQUE_KEY),
        set_={
            **{name: getattr(stmt.excluded, name) for name in REFRESHED_ON_CONFLICT},
            # An auto-dismissed alert listed as open again was reopened upstream.
            "auto_closed": case(
                (stmt.excluded.state == "open", false()),
                else_=Alert.auto_closed,
            ),
        },
    )
    db.execute(stmt)
    db.commit()


def get_alert(
    db: Session,
    repo_full_name: str,
    alert_number: int,
    alert_type: str = DEFAULT_ALERT_TYPE,
) -> Alert | None:
    return (
        db.query(Alert)
        .filter(
            Alert.repo_full_name == repo_full_name,
            Alert.alert_type == alert_type,
            Alert.github_alert_id == alert_number,
        )
        .first()
    )


def mark_auto_closed(
    db: Session,
    repo_full_name: str,
    alert_number: int,
    reason: str,
    alert_type: str = DEFAULT_ALERT_TYPE,
    now: datetime | None = None,
) -> int:
    """Record a successful auto-dismissal. Returns the number of rows updated."""
    updated = (
        db.query(Alert)
        .filter(
            Alert.repo_full_name == repo_full_name,
            Alert.alert_type == alert_type,
            Alert.github_alert_id == alert_number,
        )
        .update(
            {
                Alert.state: "auto_dismissed",
                Alert.auto_closed: True,
                Alert.auto_closed_at: now or _utcnow(),
                Alert.auto_closed_reason: reason,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return updated


def mark_dismissed(
    db: Session,
    repo_full_name: str,
    alert_number: int,
    reason: str,
    comment: str,
    alert_type: str = DEFAULT_ALERT_TYPE,
    now: datetime | None = None,
) -> int:
    """Record a manual (operator) dismissal. Does not touch the auto-close fields."""
    updated = (
        db.query(Alert)
        .filter(
            Alert.repo_full_name == repo_full_name,
            Alert.alert_type == alert_type,
            Alert.github_alert_id == alert_number,
        )
        .update(
            {
                Alert.state: "dismissed",
                Alert.dismissed_reason: reason,
                Alert.dismissed_comment: comment,
                Alert.last_checked_at: now or _utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return updated


def severity_rank():
    """SQL expression ranking severities most severe first (unknown last)."""
    return case(
        {name: rank for rank, name in enumerate(SEVERITY_ORDER)},
        value=Alert.severity,
        else_=len(SEVERITY_ORDER),
    )


def list_alerts(
    db: Session,
    state: str | None = "open",
    applicable: bool | None = None,
) -> list[Alert]:
    """Stored alerts filtered by state and/or applicability, by severity then most recently seen."""
    query = db.query(Alert)
    if state is not None:
        query = query.filter(Alert.state == state)
    if applicable is not None:
        query = query.filter(Alert.is_applicable.is_(applicable))
    return query.order_by(severity_rank(), Alert.first_seen_at.desc(), Alert.id.desc()).all()


def compute_stats(db: Session) -> StatsResponse:
    """Aggregate counts; the severity and repository breakdowns cover open applicable alerts."""
    total_open = db.query(func.count(Alert.id)).filter(Alert.state == "open").scalar() or 0
    applicable_open = (
        db.query(func.count(Alert.id))
        .filter(Alert.state == "open", Alert.is_applicable.is_(True))
        .scalar()
        or 0
    )
    auto_closed_total = (
        db.query(func.count(Alert.id)).filter(Alert.auto_closed.is_(True)).scalar() or 0
    )
    by_severity_rows = (
        db.query(Alert.severity, func.count(Alert.id))
        .filter(Alert.state == "open", Alert.is_applicable.is_(True))
        .group_by(Alert.severity)
        .order_by(severity_rank())
        .all()
    )
    count_col = func.count(Alert.id)
    by_repo_rows = (
        db.query(Alert.repo_full_name, count_col)
        .filter(Alert.state == "open", Alert.is_applicable.is_(True))
        .group_by(Alert.repo_full_name)
        .order_by(count_col.desc(), Alert.repo_full_name.asc())
        .all()
    )
    return StatsResponse(
        total_open=total_open,
        applicable_open=applicable_open,
        auto_closed_total=auto_closed_total,
        by_severity=[SeverityCount(severity=s, count=c) for s, c in by_severity_rows],
        by_repo=[RepoCount(repo_full_name=r, count=c) for r, c in by_repo_rows],
    )
