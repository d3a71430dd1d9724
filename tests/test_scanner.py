"""
Unit tests for the scan orchestrator: per-repository isolation, dismissal gating,
run-level failures, deadlines and overlap protection.

GitHub is replaced by FakeGitHubClient; storage is in-memory SQLite.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.models import Alert, ApplicabilityRule, Base, ScanRun
from app.schemas.alerts import DependabotAlertPayload, Repository
from app.services.alert_store import get_alert
from app.services.github_client import GitHubApiError
from app.services.scanner import ScanInProgressError, ScanOrchestrator, run_background_scan
from app.services.scheduler import ScanScheduler


def _payload(number: int, package: str, severity: str = "low") -> DependabotAlertPayload:
    return DependabotAlertPayload.model_validate(
        {
            "number": number,
            "state": "open",
            "dependency": {"package": {"ecosystem": "npm", "name": package}, "scope": "runtime"},
            "security_advisory": {
                "ghsa_id": f"GHSA-{number:04d}",
                "summary": f"{package} advisory",
                "severity": severity,
            },
        }
    )


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient; records dismissals."""

    def __init__(
        self,
        alerts: dict[str, list[DependabotAlertPayload]],
        failing_repos: tuple[str, ...] = (),
        slow_repos: tuple[str, ...] = (),
        list_error: Exception | None = None,
        dismiss_error: Exception | None = None,
    ) -> None:
        self.alerts = alerts
        self.failing_repos = failing_repos
        self.slow_repos = slow_repos
        self.list_error = list_error
        self.dismiss_error = dismiss_error
        self.dismissed: list[tuple[str, int, str, str]] = []
        self.listed: list[str] = []
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.block = False

    async def __aenter__(self) -> "FakeGitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def list_org_repos(self) -> list[Repository]:
        if self.list_error is not None:
            raise self.list_error
        return [Repository(name=name.split("/")[1], full_name=name) for name in self.alerts]

    async def list_open_dependabot_alerts(self, repo_full_name: str) -> list[DependabotAlertPayload]:
        self.listed.append(repo_full_name)
        if self.block:
            self.entered.set()
            await self.release.wait()
        if repo_full_name in self.slow_repos:
            await asyncio.sleep(5)
        if repo_full_name in self.failing_repos:
            raise GitHubApiError(500, "boom", "GET", f"/repos/{repo_full_name}/dependabot/alerts")
        return list(self.alerts.get(repo_full_name, []))

    async def dismiss_dependabot_alert(
        self, repo_full_name: str, alert_number: int, reason: str, comment: str
    ) -> None:
        if self.dismiss_error is not None:
            raise self.dismiss_error
        self.dismissed.append((repo_full_name, alert_number, reason, comment))


class ScannerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        self.session_factory = sessionmaker(bind=engine)
        self.db = self.session_factory()
        self.db.add_all(
            [
                ApplicabilityRule(
                    package_name="left-pad",
                    is_applicable=False,
                    reason="unused helper",
                    dismiss_reason="not_used",
                    priority=10,
                    active=True,
                ),
                ApplicabilityRule(is_applicable=True, reason="no matching rule", priority=-1, active=True),
            ]
        )
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def _orchestrator(self, client: FakeGitHubClient, **settings_overrides: object) -> ScanOrchestrator:
        values: dict[str, object] = {"GITHUB_ORG": "acme"}
        values.update(settings_overrides)
        return ScanOrchestrator(
            self.session_factory,
            lambda: client,
            Settings(**values),
            strategies=(),
        )

    def _latest_run(self) -> ScanRun:
        self.db.expire_all()
        return self.db.query(ScanRun).order_by(ScanRun.id.desc()).first()


class TestPartialFailure(ScannerTestCase):
    """A failing repository is recorded and skipped; the run still succeeds."""

    def test_one_failing_repository(self) -> None:
        client = FakeGitHubClient(
            {
                "acme/r1": [_payload(1, "lodash")],
                "acme/r2": [_payload(2, "lodash")],
                "acme/r3": [_payload(3, "lodash")],
            },
            failing_repos=("acme/r2",),
        )
        summary = asyncio.run(self._orchestrator(client).run("manual"))

        self.assertTrue(summary.success)
        self.assertEqual(summary.repos_scanned, 2)
        self.assertEqual(summary.alerts_found, 2)
        self.assertEqual(len(summary.errors), 1)
        self.assertIn("acme/r2", summary.errors[0])
        self.assertIn("GitHub API error 500", summary.errors[0])
        self.assertEqual(client.listed, ["acme/r1", "acme/r2", "acme/r3"])

        run = self._latest_run()
        self.assertEqual(run.id, summary.scan_id)
        self.assertEqual(run.scan_type, "manual")
        self.assertTrue(run.success)
        self.assertEqual(run.repos_scanned, 2)
        self.assertEqual(run.errors, summary.errors)
        self.assertIsNotNone(run.completed_at)

    def test_repository_deadline(self) -> None:
        client = FakeGitHubClient(
            {"acme/slow": [_payload(1, "lodash")], "acme/fast": [_payload(2, "lodash")]},
            slow_repos=("acme/slow",),
        )
        summary = asyncio.run(self._orchestrator(client, SCAN_REPO_TIMEOUT_SEC=0.05).run("manual"))
        self.assertTrue(summary.success)
        self.assertEqual(summary.repos_scanned, 1)
        self.assertEqual(summary.errors, ["Failed to scan acme/slow: timed out after 0.05s"])
        self.assertIsNotNone(get_alert(self.db, "acme/fast", 2))


class TestDismissalGating(ScannerTestCase):
    """Only non-applicable alerts with a dismiss reason are dismissed upstream."""

    def test_only_non_applicable_alerts_are_dismissed(self) -> None:
        client = FakeGitHubClient({"acme/web": [_payload(1, "left-pad"), _payload(2, "lodash")]})
        summary = asyncio.run(self._orchestrator(client).run("scheduled"))

        self.assertEqual(
            client.dismissed,
            [("acme/web", 1, "not_used", "[security-bot] unused helper")],
        )
        self.assertEqual(summary.alerts_found, 2)
        self.assertEqual(summary.alerts_auto_closed, 1)
        self.assertEqual(summary.applicable_alerts, 1)
        self.assertEqual(summary.errors, [])

        self.db.expire_all()
        dismissed = get_alert(self.db, "acme/web", 1)
        self.assertEqual(dismissed.state, "auto_dismissed")
        self.assertTrue(dismissed.auto_closed)
        kept = get_alert(self.db, "acme/web", 2)
        self.assertEqual(kept.state, "open")
        self.assertTrue(kept.is_applicable)

    def test_dismissal_failure_is_recorded_and_alert_stays_open(self) -> None:
        client = FakeGitHubClient(
            {"acme/web": [_payload(1, "left-pad"), _payload(2, "lodash")]},
            dismiss_error=GitHubApiError(422, "alert already dismissed"),
        )
        summary = asyncio.run(self._orchestrator(client).run("manual"))

        self.assertTrue(summary.success)
        self.assertEqual(summary.alerts_auto_closed, 0)
        self.assertEqual(len(summary.errors), 1)
        self.assertTrue(summary.errors[0].startswith("Failed to dismiss acme/web#1:"))
        self.db.expire_all()
        row = get_alert(self.db, "acme/web", 1)
        self.assertEqual(row.state, "open")
        self.assertFalse(row.is_applicable)
        self.assertFalse(row.auto_closed)

    def test_rescan_is_idempotent(self) -> None:
        client = FakeGitHubClient({"acme/web": [_payload(2, "lodash")]})
        orchestrator = self._orchestrator(client)
        asyncio.run(orchestrator.run("manual"))
        asyncio.run(orchestrator.run("manual"))
        self.assertEqual(self.db.query(ScanRun).count(), 2)
        self.assertEqual(self.db.query(Alert).count(), 1)


class TestRunFailure(ScannerTestCase):
    def test_enumeration_failure_fails_the_run(self) -> None:
        client = FakeGitHubClient({}, list_error=GitHubApiError(403, "Resource not accessible by integration"))
        summary = asyncio.run(self._orchestrator(client).run("scheduled"))

        self.assertFalse(summary.success)
        self.assertEqual(len(summary.errors), 1)
        self.assertTrue(summary.errors[0].startswith("Scan failed:"))
        run = self._latest_run()
        self.assertFalse(run.success)
        self.assertIsNotNone(run.completed_at)

    def test_targeted_scan_skips_enumeration(self) -> None:
        client = FakeGitHubClient({}, list_error=AssertionError("should not enumerate"))
        summary = asyncio.run(self._orchestrator(client).run("webhook", ["web", "other/tool"]))
        self.assertTrue(summary.success)
        self.assertEqual(client.listed, ["acme/web", "other/tool"])
        self.assertEqual(self._latest_run().scan_type, "webhook")


class TestOverlap(ScannerTestCase):
    def test_second_scan_is_rejected_while_running(self) -> None:
        client = FakeGitHubClient({"acme/web": []})
        client.block = True
        orchestrator = self._orchestrator(client)

        async def run():
            first = asyncio.create_task(orchestrator.run("scheduled"))
            await client.entered.wait()
            self.assertTrue(orchestrator.is_running)
            with self.assertRaises(ScanInProgressError):
                await orchestrator.run("manual")
            client.release.set()
            return await first

        summary = asyncio.run(run())
        self.assertTrue(summary.success)
        self.assertFalse(orchestrator.is_running)
        self.assertEqual(self.db.query(ScanRun).count(), 1)

    def test_background_scan_defers_targeted_overlap(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(side_effect=ScanInProgressError())
        self.assertIsNone(asyncio.run(run_background_scan(orchestrator, "webhook", ["acme/web"])))
        orchestrator.run.assert_awaited_once_with("webhook", ["acme/web"])
        orchestrator.defer.assert_called_once_with(["acme/web"])

    def test_background_scan_skips_untargeted_overlap(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(side_effect=ScanInProgressError())
        self.assertIsNone(asyncio.run(run_background_scan(orchestrator, "scheduled")))
        orchestrator.defer.assert_not_called()

    def test_webhook_scan_during_running_scan_runs_afterwards(self) -> None:
        client = FakeGitHubClient({"acme/web": [], "acme/api": [_payload(7, "lodash")]})
        client.block = True
        orchestrator = self._orchestrator(client)

        async def run():
            first = asyncio.create_task(orchestrator.run("scheduled", ["acme/web"]))
            await client.entered.wait()
            self.assertIsNone(await run_background_scan(orchestrator, "webhook", ["acme/api"]))
            client.release.set()
            return await first

        summary = asyncio.run(run())
        self.assertTrue(summary.success)
        self.assertFalse(orchestrator.is_running)
        self.assertEqual(client.listed, ["acme/web", "acme/api"])
        runs = self.db.query(ScanRun).order_by(ScanRun.id).all()
        self.assertEqual([r.scan_type for r in runs], ["scheduled", "webhook"])
        self.assertTrue(runs[1].success)
        self.assertIsNotNone(get_alert(self.db, "acme/api", 7))


class TestScheduler(unittest.TestCase):
    def test_tick_starts_scheduled_scan(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=None)
        scheduler = ScanScheduler(orchestrator, interval_seconds=3600)

        async def run() -> None:
            scheduler.start()
            await scheduler.tick()
            await scheduler.stop()

        asyncio.run(run())
        orchestrator.run.assert_awaited_once_with("scheduled", None)


class TestSchedulerShutdown(ScannerTestCase):
    def test_stop_finalizes_cancelled_scan(self) -> None:
        client = FakeGitHubClient({"acme/web": [_payload(1, "lodash")]})
        client.block = True
        orchestrator = self._orchestrator(client)
        scheduler = ScanScheduler(orchestrator, interval_seconds=3600)

        async def run() -> None:
            scheduler.tick()
            await client.entered.wait()
            await scheduler.stop()

        asyncio.run(run())
        self.assertFalse(orchestrator.is_running)
        run_row = self._latest_run()
        self.assertEqual(run_row.scan_type, "scheduled")
        self.assertIsNotNone(run_row.completed_at)
        self.assertFalse(run_row.success)
        self.assertEqual(run_row.errors, ["Scan failed: cancelled"])


if __name__ == "__main__":
    unittest.main()
