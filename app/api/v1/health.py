"""Health: database connectivity, GitHub App readiness and the latest scan run."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import check_db_connected, get_db
from app.models import ScanRun
from app.schemas.health import HealthResponse, LastScan
from app.services.credentials import GitHubNotConfiguredError, ensure_github_configured
from app.services.scanner import ScanOrchestrator, get_orchestrator

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
) -> HealthResponse:
    """Status is "degraded" when the database is unreachable or GitHub is not configured."""
    db_ok = check_db_connected(db)
    try:
        ensure_github_configured(settings)
        github_ok = True
    except GitHubNotConfiguredError:
        github_ok = False

    last_scan = None
    if db_ok:
        try:
            row = db.query(ScanRun).order_by(ScanRun.started_at.desc(), ScanRun.id.desc()).first()
        except SQLAlchemyError:
            row = None
        if row is not None:
            last_scan = LastScan(
                scan_type=row.scan_type,
                started_at=row.started_at,
                completed_at=row.completed_at,
                success=row.success,
            )

    return HealthResponse(
        status="ok" if db_ok and github_ok else "degraded",
        environment=settings.APP_ENV,
        database="connected" if db_ok else "disconnected",
        github="configured" if github_ok else "not_configured",
        scan_in_progress=orchestrator.is_running,
        last_scan=last_scan,
    )
