"""Scan audit trail: most recent scan runs."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_admin_key
from app.models import ScanRun
from app.schemas.scans import ScanRunItem

router = APIRouter(dependencies=[Depends(require_admin_key)])

SCAN_HISTORY_LIMIT = 50


@router.get("", response_model=list[ScanRunItem])
def get_scans(db: Annotated[Session, Depends(get_db)]) -> list[ScanRunItem]:
    rows = (
        db.query(ScanRun)
        .order_by(ScanRun.started_at.desc(), ScanRun.id.desc())
        .limit(SCAN_HISTORY_LIMIT)
        .all()
    )
    return [ScanRunItem.model_validate(r) for r in rows]
