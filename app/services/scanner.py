"""Scan orchestrator: enumerate repositories, classify and store their open alerts, auto-dismiss.

One scan run is sequential: repositories one at a time, alerts one at a time, and for each
alert classify -> store -> (maybe) dismiss. A failing repository is recorded in the run's
error list and the scan moves on; only a failure outside that boundary (e.g. listing the
organization's repositories) fails the whole run. Every run writes exactly one ScanRun row.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.models import ScanRun
from app.schemas.alerts import Repository
from app.schemas.scans import ScanSummary, ScanTrigger
from app.services.alert_store import upsert_alert
from app.services.applicability import classify
from app.services.dismissal import auto_dismiss
from app.services.github_client import ClientFactory, GitHubClient, get_client_factory
from app.services.heuristics import DEFAULT_STRATEGIES, HeuristicStrategy

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class ScanInProgressError(Exception):
    """Raised when a scan is requested while another one is running in this process."""

    def __init__(self, message: str = "A scan is already in progress.") -> None:
        self.message = message
        super().__init__(message)


@dataclass
class _Counters:
    repos_scanned: int = 0
    alerts_found: int = 0
    alerts_auto_closed: int = 0
    applicable_alerts: int = 0
    errors: list[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _repository_from_name(full_name: str, default_org: str | None) -> Repository:
    full_name = full_name.strip().strip("/")
    if "/" not in full_name and default_org:
        full_name = f"{default_org}/{full_name}"
    return Repository(name=full_name.rsplit("/", 1)[-1], full_name=full_name)


class ScanOrchestrator:
    """
    Drives one scan at a time. Overlapping requests raise ScanInProgressError instead of
    racing on the same alerts.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        client_factory: ClientFactory,
        settings: "Settings",
        strategies: tuple[HeuristicStrategy, ...] = DEFAULT_STRATEGIES,
    ) -> None:
        self._session_factory = session_factory
        self._client_factory = client_factory
        self._settings = settings
        self._strategies = strategies
        self._lock = asyncio.Lock()
        self._deferred: set[str] = set()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        trigger: ScanTrigger,
        repositories: list[str] | None = None,
    ) -> ScanSummary:
        """
        Execute one scan. With repositories=None every repository in GITHUB_ORG is scanned;
        otherwise only the named ones (targeted webhook scans).
        Repositories deferred while this run held the lock are scanned before returning.
        """
        if self._lock.locked():
            raise ScanInProgressError()
        async with self._lock:
            summary = await self._run_in_session(trigger, repositories)
        await self._drain_deferred()
        return summary

    def defer(self, repositories: list[str]) -> None:
        """Queue repositories for a webhook-triggered scan once the running scan finishes."""
        self._deferred.update(repositories)

    async def _drain_deferred(self) -> None:
        while self._deferred and not self._lock.locked():
            repositories = sorted(self._deferred)
            self._deferred.clear()
            logger.info("Running deferred webhook scan", extra={"repositories": repositories})
            try:
                async with self._lock:
                    await self._run_in_session("webhook", repositories)
            except Exception:
                logger.exception("Deferred webhook scan crashed", extra={"repositories": repositories})

    async def _run_in_session(
        self,
        trigger: ScanTrigger,
        repositories: list[str] | None,
    ) -> ScanSummary:
        db = self._session_factory()
        try:
            return await self._run(db, trigger, repositories)
        finally:
            db.close()

    async def _run(
        self,
        db: Session,
        trigger: ScanTrigger,
        repositories: list[str] | None,
    ) -> ScanSummary:
        scan = ScanRun(scan_type=trigger, started_at=_utcnow())
        db.add(scan)
        db.commit()
        scan_id = scan.id
        counters = _Counters()
        logger.info("Scan started", extra={"scan_id": scan_id, "trigger": trigger})

        try:
            async with self._client_factory() as client:
                if repositories is None:
                    repos = await client.list_org_repos()
                else:
                    repos = [
                        _repository_from_name(name, self._settings.GITHUB_ORG)
                        for name in repositories
                    ]
                logger.info("Scanning %s repositories...", len(repos), extra={"scan_id": scan_id})
                for repo in repos:
                    await self._scan_repository_isolated(db, client, repo, counters)
        except asyncio.CancelledError:
            counters.errors.append("Scan failed: cancelled")
            logger.warning("Scan cancelled", extra={"scan_id": scan_id, "trigger": trigger})
            db.rollback()
            self._finalize(db, scan, counters, success=False)
            raise
        except Exception as e:
            counters.errors.append(f"Scan failed: {e}")
            logger.exception("Scan failed", extra={"scan_id": scan_id, "trigger": trigger})
            db.rollback()
            self._finalize(db, scan, counters, success=False)
            return self._summary(scan_id, trigger, counters, success=False)

        self._finalize(db, scan, counters, success=True)
        logger.info(
            "Scan completed",
            extra={
                "scan_id": scan_id,
                "trigger": trigger,
                "repos_scanned": counters.repos_scanned,
                "alerts_found": counters.alerts_found,
                "alerts_auto_closed": counters.alerts_auto_closed,
                "error_count": len(counters.errors),
            },
        )
        return self._summary(scan_id, trigger, counters, success=True)

    async def _scan_repository_isolated(
        self,
        db: Session,
        client: GitHubClient,
        repo: Repository,
        counters: _Counters,
    ) -> None:
        """Scan one repository under a deadline; any failure is recorded, never raised."""
        timeout = self._settings.SCAN_REPO_TIMEOUT_SEC
        try:
            await asyncio.wait_for(
                self._scan_repository(db, client, repo, counters), timeout=timeout
            )
        except asyncio.TimeoutError:
            db.rollback()
            message = f"Failed to scan {repo.full_name}: timed out after {timeout:g}s"
            counters.errors.append(message)
            logger.warning(message)
        except Exception as e:
            db.rollback()
            message = f"Failed to scan {repo.full_name}: {e}"
            counters.errors.append(message)
            logger.warning(message)

    async def _scan_repository(
        self,
        db: Session,
        client: GitHubClient,
        repo: Repository,
        counters: _Counters,
    ) -> None:
        alerts = await client.list_open_dependabot_alerts(repo.full_name)
        counters.repos_scanned += 1
        counters.alerts_found += len(alerts)

        for alert in alerts:
            classification = classify(db, alert, self._strategies)
            # Stored before any dismissal so a crash leaves "not applicable, not yet closed".
            upsert_alert(db, repo, alert, classification)

            if classification.applicable:
                counters.applicable_alerts += 1
                continue
            if not classification.dismiss_reason:
                continue
            outcome = await auto_dismiss(
                client,
                db,
                self._settings,
                repo.full_name,
                alert.number,
                classification.dismiss_reason,
                classification.reason,
            )
            if outcome.success:
                counters.alerts_auto_closed += 1
            elif outcome.error:
                counters.errors.append(outcome.error)

    def _finalize(self, db: Session, scan: ScanRun, counters: _Counters, success: bool) -> None:
        scan.completed_at = _utcnow()
        scan.repos_scanned = counters.repos_scanned
        scan.alerts_found = counters.alerts_found
        scan.alerts_auto_closed = counters.alerts_auto_closed
        scan.errors = list(counters.errors) or None
        scan.success = success
        db.add(scan)
        db.commit()

    @staticmethod
    def _summary(
        scan_id: int | None,
        trigger: ScanTrigger,
        counters: _Counters,
        success: bool,
    ) -> ScanSummary:
        return ScanSummary(
            scan_id=scan_id,
            trigger=trigger,
            success=success,
            repos_scanned=counters.repos_scanned,
            alerts_found=counters.alerts_found,
            alerts_auto_closed=counters.alerts_auto_closed,
            applicable_alerts=counters.applicable_alerts,
            errors=list(counters.errors),
        )


async def run_background_scan(
    orchestrator: ScanOrchestrator,
    trigger: ScanTrigger,
    repositories: list[str] | None = None,
) -> ScanSummary | None:
    """
    Fire-and-forget wrapper for scheduled and webhook scans: log instead of raising.

    A targeted scan that collides with a running one is deferred, not dropped.
    """
    try:
        return await orchestrator.run(trigger, repositories)
    except ScanInProgressError:
        if repositories:
            orchestrator.defer(repositories)
            logger.info("Deferred %s scan of %s until the running scan finishes", trigger, repositories)
        else:
            logger.warning("Skipping %s scan: another scan is in progress", trigger)
    except Exception:
        logger.exception("Background %s scan crashed", trigger)
    return None


@lru_cache
def get_orchestrator() -> ScanOrchestrator:
    """Process-wide orchestrator (one lock per process)."""
    return ScanOrchestrator(SessionLocal, get_client_factory(), get_settings())
