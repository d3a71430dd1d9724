"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import alerts, health, rules, scan, scans, stats, webhook

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(scan.router, prefix="/scan", tags=["scan"])
router.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
router.include_router(scans.router, prefix="/scans", tags=["scans"])
router.include_router(rules.router, prefix="/rules", tags=["rules"])
router.include_router(stats.router, prefix="/stats", tags=["stats"])
router.include_router(webhook.router, prefix="/webhook", tags=["webhook"])
