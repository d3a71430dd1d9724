"""FastAPI application entrypoint. No business logic; only wiring, lifespan and middleware."""

from dotenv import load_dotenv

load_dotenv()

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.services.scanner import get_orchestrator
from app.services.scheduler import ScanScheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the periodic scan timer when enabled (otherwise scans come from cron or POST /scan)."""
    scheduler: ScanScheduler | None = None
    if settings.SCHEDULED_SCAN_ENABLED:
        scheduler = ScanScheduler(
            get_orchestrator(),
            interval_seconds=settings.SCHEDULED_SCAN_INTERVAL_MINUTES * 60,
        )
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(
    title="Security Alerts API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Liveness; no auth."""
    return {"service": "security-alerts", "status": "operational"}
