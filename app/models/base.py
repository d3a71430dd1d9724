"""Declarative Base shared by Alert, ApplicabilityRule and ScanRun."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Matches PostgreSQL's own index/primary key names so autogenerate stays quiet.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "pk": "%(table_name)s_pkey",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
