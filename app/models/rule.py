"""ORM model for operator-authored applicability rules."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, func

from app.models.base import Base

# Fields a rule may constrain; None on a rule means "match any".
RULE_MATCH_FIELDS = (
    "package_name",
    "package_ecosystem",
    "ghsa_id",
    "cve_id",
    "severity",
)


class ApplicabilityRule(Base):
    """
    Declarative classification rule. Evaluated in descending priority; the first rule whose
    non-null match fields all equal the alert's fields wins.
    """

    __tablename__ = "applicability_rules"
    __table_args__ = (Index("ix_rules_active_priority", "active", "priority"),)

    id = Column(Integer, primary_key=True, autoincrement=True)

    package_name = Column(String(512), nullable=True)
    package_ecosystem = Column(String(64), nullable=True)
    ghsa_id = Column(String(64), nullable=True)
    cve_id = Column(String(64), nullable=True)
    severity = Column(String(32), nullable=True)

    is_applicable = Column(Boolean, nullable=False)
    reason = Column(Text, nullable=False)
    dismiss_reason = Column(String(32), nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def is_catch_all(self) -> bool:
        """True when the rule declares no match field at all."""
        return all(getattr(self, name) is None for name in RULE_MATCH_FIELDS)
