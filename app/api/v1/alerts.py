"""Stored alerts listing and manual dismissal override."""

import logging
from typing import Annotated, Literal

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.security import require_admin_key
from app.schemas.alerts import AlertItem, AlertsResponse, AlertState, DismissRequest, DismissResponse
from app.services.alert_store import list_alerts, mark_dismissed
from app.services.credentials import (
    CredentialError,
    GitHubNotConfiguredError,
    ensure_github_configured,
)
from app.services.dismissal import bot_comment
from app.services.github_client import ClientFactory, GitHubApiError, get_client_factory

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.get("", response_model=AlertsResponse)
def get_alerts(
    db: Annotated[Session, Depends(get_db)],
    state: Annotated[AlertState, Query()] = "open",
    applicable: Annotated[Literal["true", "false"] | None, Query()] = None,
) -> AlertsResponse:
    """List stored alerts by lifecycle state (default open) and optional applicability, most severe first."""
    applicable_filter = None if applicable is None else applicable == "true"
    rows = list_alerts(db, state=state, applicable=applicable_filter)
    items = [AlertItem.model_validate(r) for r in rows]
    return AlertsResponse(count=len(items), alerts=items)


@router.post("/{repo:path}/{alert_number}/dismiss", response_model=DismissResponse)
async def post_dismiss_alert(
    repo: str,
    alert_number: int,
    body: DismissRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> DismissResponse:
    """
    Operator override: dismiss one alert upstream with an explicit reason and comment.

    `repo` is owner/name; a bare name is resolved against GITHUB_ORG.
    """
    repo_full_name = repo.strip("/")
    if "/" not in repo_full_name:
        if not settings.GITHUB_ORG:
            raise HTTPException(status_code=422, detail="repo must be owner/name when GITHUB_ORG is not set.")
        repo_full_name = f"{settings.GITHUB_ORG}/{repo_full_name}"
    try:
        ensure_github_configured(settings, require_org=False)
    except GitHubNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=e.message) from e

    try:
        async with client_factory() as client:
            await client.dismiss_dependabot_alert(
                repo_full_name, alert_number, body.reason, bot_comment(settings, body.comment)
            )
    except GitHubApiError as e:
        logger.error(
            "Manual dismissal failed",
            extra={"repo": repo_full_name, "alert_number": alert_number, "status_code": e.status_code},
        )
        status = 502 if e.status_code >= 500 else 400
        raise HTTPException(status_code=status, detail=e.message) from e
    except CredentialError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    except httpx.HTTPError as e:
        raise HTTPException(status_code=503, detail=f"GitHub unreachable: {e}") from e

    mark_dismissed(db, repo_full_name, alert_number, body.reason, body.comment.strip())
    logger.info("Manually dismissed %s#%s (%s)", repo_full_name, alert_number, body.reason)
    return DismissResponse(success=True, repo_full_name=repo_full_name, alert_number=alert_number)
