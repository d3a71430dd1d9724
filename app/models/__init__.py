"""SQLAlchemy ORM models."""

from app.models.alert import Alert
from app.models.base import Base
from app.models.rule import ApplicabilityRule
from app.models.scan_run import ScanRun

__all__ = ["Alert", "ApplicabilityRule", "Base", "ScanRun"]
