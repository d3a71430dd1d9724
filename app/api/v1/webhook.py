"""GitHub webhook receiver: verified dependabot_alert events trigger a targeted background scan."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from app.core.config import Settings, get_settings
from app.core.security import SIGNATURE_HEADER, verify_webhook_signature
from app.services.scanner import ScanOrchestrator, get_orchestrator, run_background_scan

logger = logging.getLogger(__name__)
router = APIRouter()

EVENT_HEADER = "X-GitHub-Event"
SCAN_EVENTS = frozenset({"dependabot_alert"})


@router.post("")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Annotated[Settings, Depends(get_settings)],
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
) -> dict[str, bool]:
    """
    Verify X-Hub-Signature-256 against GITHUB_WEBHOOK_SECRET, then acknowledge.

    dependabot_alert events schedule a webhook-triggered scan of the affected repository
    after the response is sent; other events are acknowledged only.
    """
    if settings.GITHUB_WEBHOOK_SECRET is None or not settings.GITHUB_WEBHOOK_SECRET.get_secret_value():
        raise HTTPException(status_code=503, detail="GITHUB_WEBHOOK_SECRET is not configured.")

    raw_body = await request.body()
    if not verify_webhook_signature(
        settings.GITHUB_WEBHOOK_SECRET.get_secret_value(),
        raw_body,
        request.headers.get(SIGNATURE_HEADER),
    ):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature.")

    try:
        payload = json.loads(raw_body.decode("utf-8")) if raw_body else {}
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid JSON: {e!s}") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=422, detail="Webhook payload must be a JSON object.")

    event = request.headers.get(EVENT_HEADER, "")
    if event not in SCAN_EVENTS:
        return {"received": True, "scan_scheduled": False}

    repository = payload.get("repository")
    repo_full_name = repository.get("full_name") if isinstance(repository, dict) else None
    if not isinstance(repo_full_name, str):
        repo_full_name = None
    logger.info(
        "Dependabot alert webhook",
        extra={"action": payload.get("action"), "repo": repo_full_name},
    )
    if not repo_full_name:
        return {"received": True, "scan_scheduled": False}

    background_tasks.add_task(run_background_scan, orchestrator, "webhook", [repo_full_name])
    return {"received": True, "scan_scheduled": True}
