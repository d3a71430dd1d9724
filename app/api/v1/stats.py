"""Aggregate alert statistics."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_admin_key
from app.schemas.stats import StatsResponse
from app.services.alert_store import compute_stats

router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.get("", response_model=StatsResponse)
def get_stats(db: Annotated[Session, Depends(get_db)]) -> StatsResponse:
    return compute_stats(db)
