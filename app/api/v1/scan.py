"""Manual scan trigger: runs a full scan synchronously and returns its summary."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from app.core.config import Settings, get_settings
from app.core.security import require_admin_key
from app.schemas.scans import ScanSummary
from app.services.credentials import GitHubNotConfiguredError, ensure_github_configured
from app.services.scanner import ScanInProgressError, ScanOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.post("", response_model=ScanSummary)
async def post_scan(
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ScanSummary:
    """
    Scan every repository in GITHUB_ORG now.

    The same summary is returned for full and partial success: check `errors` for
    per-repository failures, `success` only reports whether the run itself completed.
    """
    try:
        ensure_github_configured(settings)
    except GitHubNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    try:
        return await orchestrator.run("manual")
    except ScanInProgressError as e:
        raise HTTPException(status_code=409, detail=e.message) from e
