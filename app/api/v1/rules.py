"""Applicability rule administration: list and add rules."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_admin_key
from app.models import ApplicabilityRule
from app.schemas.rules import RuleCreate, RuleResponse

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.get("", response_model=list[RuleResponse])
def get_rules(db: Annotated[Session, Depends(get_db)]) -> list[RuleResponse]:
    """All rules (active and inactive), highest priority first."""
    rows = (
        db.query(ApplicabilityRule)
        .order_by(ApplicabilityRule.priority.desc(), ApplicabilityRule.id.asc())
        .all()
    )
    return [RuleResponse.model_validate(r) for r in rows]


@router.post("", response_model=RuleResponse, status_code=201)
def create_rule(
    body: RuleCreate,
    db: Annotated[Session, Depends(get_db)],
) -> RuleResponse:
    """
    Add a rule. Null match fields match any alert; a rule with no match fields is a catch-all.
    Takes effect on the next classification (rules are not cached).
    """
    rule = ApplicabilityRule(**body.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)
    logger.info(
        "Applicability rule created",
        extra={"rule_id": rule.id, "priority": rule.priority, "is_applicable": rule.is_applicable},
    )
    return RuleResponse.model_validate(rule)
