"""
CLI entrypoint for the security scan. Run from cron, e.g.:

  python -m app.scan

Or every 6 hours: 0 */6 * * * cd /path/to/service && .venv/bin/python -m app.scan
Targeted: python -m app.scan --repo my-org/my-repo --trigger manual
"""

import argparse
import asyncio
import logging
import sys

from app.core.config import get_settings
from app.services.credentials import GitHubNotConfiguredError, ensure_github_configured
from app.services.scanner import ScanInProgressError, get_orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run one scan; exit 0 only when the run succeeded."""
    parser = argparse.ArgumentParser(description="Scan repositories for Dependabot alerts and auto-dismiss non-applicable ones.")
    parser.add_argument(
        "--repo",
        action="append",
        dest="repos",
        help="Repository (owner/name) to scan; repeatable. Default: every repository in GITHUB_ORG.",
    )
    parser.add_argument(
        "--trigger",
        choices=("scheduled", "manual"),
        default="scheduled",
        help="Trigger recorded on the scan run (default: scheduled).",
    )
    args = parser.parse_args(argv)

    orchestrator = get_orchestrator()
    try:
        ensure_github_configured(get_settings(), require_org=not args.repos)
        summary = asyncio.run(orchestrator.run(args.trigger, args.repos))
    except GitHubNotConfiguredError as e:
        logger.error(e.message)
        return 1
    except ScanInProgressError as e:
        logger.error(e.message)
        return 1
    except Exception as e:
        logger.exception("Scan job failed: %s", e)
        return 1

    logger.info(
        "Scan %s finished: success=%s repos_scanned=%s alerts_found=%s alerts_auto_closed=%s errors=%s",
        summary.scan_id,
        summary.success,
        summary.repos_scanned,
        summary.alerts_found,
        summary.alerts_auto_closed,
        len(summary.errors),
    )
    for error in summary.errors:
        logger.warning(error)
    return 0 if summary.success else 1


if __name__ == "__main__":
    sys.exit(main())
