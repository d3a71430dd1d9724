"""Unit tests for the cron entrypoint app.scan.main (exit codes and argument handling)."""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from app.core.config import Settings
from app.scan import main
from app.schemas.scans import ScanSummary
from app.services.scanner import ScanInProgressError


def _configured() -> Settings:
    return Settings(
        GITHUB_APP_ID="1",
        GITHUB_APP_PRIVATE_KEY="pem",
        GITHUB_INSTALLATION_ID="2",
        GITHUB_ORG="acme",
    )


class TestScanCli(unittest.TestCase):
    def _orchestrator(self, summary: ScanSummary | None = None, error: Exception | None = None) -> MagicMock:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=summary, side_effect=error)
        return orchestrator

    @patch("app.scan.get_settings")
    @patch("app.scan.get_orchestrator")
    def test_successful_scan_exits_zero(self, get_orchestrator: MagicMock, get_settings: MagicMock) -> None:
        get_settings.return_value = _configured()
        orchestrator = self._orchestrator(
            ScanSummary(
                scan_id=4,
                trigger="scheduled",
                success=True,
                repos_scanned=2,
                errors=["Failed to scan acme/r2: boom"],
            )
        )
        get_orchestrator.return_value = orchestrator
        self.assertEqual(main([]), 0)
        orchestrator.run.assert_awaited_once_with("scheduled", None)

    @patch("app.scan.get_settings")
    @patch("app.scan.get_orchestrator")
    def test_failed_run_exits_one(self, get_orchestrator: MagicMock, get_settings: MagicMock) -> None:
        get_settings.return_value = _configured()
        get_orchestrator.return_value = self._orchestrator(
            ScanSummary(trigger="manual", success=False, errors=["Scan failed: boom"])
        )
        self.assertEqual(main(["--trigger", "manual"]), 1)

    @patch("app.scan.get_settings")
    @patch("app.scan.get_orchestrator")
    def test_targeted_repos_do_not_need_org(self, get_orchestrator: MagicMock, get_settings: MagicMock) -> None:
        settings = _configured()
        settings.GITHUB_ORG = None
        get_settings.return_value = settings
        orchestrator = self._orchestrator(ScanSummary(trigger="manual", success=True))
        get_orchestrator.return_value = orchestrator
        self.assertEqual(main(["--repo", "acme/web", "--repo", "acme/api", "--trigger", "manual"]), 0)
        orchestrator.run.assert_awaited_once_with("manual", ["acme/web", "acme/api"])

    @patch("app.scan.get_settings")
    @patch("app.scan.get_orchestrator")
    def test_unconfigured_github_exits_one(self, get_orchestrator: MagicMock, get_settings: MagicMock) -> None:
        get_settings.return_value = Settings(GITHUB_APP_ID=None)
        orchestrator = self._orchestrator()
        get_orchestrator.return_value = orchestrator
        self.assertEqual(main([]), 1)
        orchestrator.run.assert_not_awaited()

    @patch("app.scan.get_settings")
    @patch("app.scan.get_orchestrator")
    def test_overlapping_scan_exits_one(self, get_orchestrator: MagicMock, get_settings: MagicMock) -> None:
        get_settings.return_value = _configured()
        get_orchestrator.return_value = self._orchestrator(error=ScanInProgressError())
        self.assertEqual(main([]), 1)


if __name__ == "__main__":
    unittest.main()
