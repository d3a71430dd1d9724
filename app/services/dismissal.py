"""Dismissal workflow: close non-applicable alerts upstream and record the outcome locally."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from sqlalchemy.orm import Session

from app.services.alert_store import DEFAULT_ALERT_TYPE, mark_auto_closed
from app.services.credentials import CredentialError
from app.services.github_client import GitHubApiError, GitHubClient

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class DismissalOutcome:
    """Result of one dismissal attempt; error is set only on failure."""

    success: bool
    error: str | None = None


def bot_comment(settings: "Settings", comment: str) -> str:
    """Tag the comment with the bot identity so upstream audit logs show who closed it."""
    comment = (comment or "").strip()
    if not comment:
        return settings.BOT_COMMENT_PREFIX
    return f"{settings.BOT_COMMENT_PREFIX} {comment}"


async def auto_dismiss(
    client: GitHubClient,
    db: Session,
    settings: "Settings",
    repo_full_name: str,
    alert_number: int,
    reason: str,
    comment: str,
    alert_type: str = DEFAULT_ALERT_TYPE,
) -> DismissalOutcome:
    """
    Dismiss one alert upstream; on success mark it auto-closed in the store.

    Upstream and credential failures are returned as a failed outcome attributed to
    repo#number so the caller can keep going. Storage failures propagate.
    """
    try:
        await client.dismiss_dependabot_alert(
            repo_full_name, alert_number, reason, bot_comment(settings, comment)
        )
    except (GitHubApiError, CredentialError, httpx.HTTPError) as e:
        error = f"Failed to dismiss {repo_full_name}#{alert_number}: {e}"
        logger.warning(error)
        return DismissalOutcome(success=False, error=error)

    mark_auto_closed(db, repo_full_name, alert_number, comment, alert_type=alert_type)
    logger.info("Auto-closed: %s#%s - %s", repo_full_name, alert_number, comment)
    return DismissalOutcome(success=True)
