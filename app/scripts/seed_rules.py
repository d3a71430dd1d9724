"""
Insert the default applicability rules if they are missing. Run from project root:
  python -m app.scripts.seed_rules
"""
import sys

from sqlalchemy.orm import Session

from app.core.database import session_scope
from app.models import ApplicabilityRule
from app.services.applicability import NO_MATCH_REASON

# The hono rule ships inactive: while active it overrides the built-in hono heuristics.
DEFAULT_RULES = (
    {
        "package_name": "hono",
        "package_ecosystem": "npm",
        "is_applicable": True,
        "reason": "Hono is our web framework - check if specific vulnerability applies",
        "dismiss_reason": None,
        "priority": 10,
        "active": False,
    },
    {
        "package_name": None,
        "package_ecosystem": None,
        "is_applicable": True,
        "reason": NO_MATCH_REASON,
        "dismiss_reason": None,
        "priority": -1,
        "active": True,
    },
)


def seed_rules(db: Session) -> int:
    """Add each default rule unless a rule with the same package and priority exists. Returns rows added."""
    created = 0
    for spec in DEFAULT_RULES:
        package_filter = (
            ApplicabilityRule.package_name.is_(None)
            if spec["package_name"] is None
            else ApplicabilityRule.package_name == spec["package_name"]
        )
        existing = (
            db.query(ApplicabilityRule)
            .filter(package_filter, ApplicabilityRule.priority == spec["priority"])
            .first()
        )
        if existing:
            continue
        db.add(ApplicabilityRule(**spec))
        created += 1
    db.flush()
    return created


def main() -> int:
    with session_scope() as db:
        created = seed_rules(db)
    print(f"Seeded {created} rule(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
