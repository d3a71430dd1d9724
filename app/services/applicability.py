"""Applicability rule engine: decide whether an alert affects our deployment and how to dismiss it.

Order of evaluation:

1. Active rules, priority descending (ties: lower id first). The first rule whose declared
   (non-null) match fields all equal the alert's fields wins outright.
2. If no field-matching rule matched (only a catch-all, or nothing), the heuristic strategies
   run. Their verdict, else the catch-all's verdict, else the built-in default applies.
3. Severity floor: without a field-matching rule, critical/high alerts are always applicable.

No specificity inference: precedence between rules comes only from their priority values.
"""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy.orm import Session

from app.models import ApplicabilityRule
from app.schemas.alerts import DISMISS_REASON_VALUES, Classification, DependabotAlertPayload
from app.services.heuristics import DEFAULT_STRATEGIES, HeuristicStrategy, run_heuristics

logger = logging.getLogger(__name__)

NO_MATCH_REASON = "no matching rule"

# Severities that can never be auto-dismissed without an explicit field-matching rule.
FLOOR_SEVERITIES = frozenset({"critical", "high"})


def _alert_field_values(alert: DependabotAlertPayload) -> dict[str, str | None]:
    """Alert values compared against the rule match fields."""
    return {
        "package_name": alert.package_name,
        "package_ecosystem": alert.package_ecosystem,
        "ghsa_id": alert.security_advisory.ghsa_id,
        "cve_id": alert.security_advisory.cve_id,
        "severity": alert.severity,
    }


def rule_matches(rule: ApplicabilityRule, alert: DependabotAlertPayload) -> bool:
    """True iff every non-null match field on the rule equals the alert's value."""
    values = _alert_field_values(alert)
    for name, alert_value in values.items():
        rule_value = getattr(rule, name)
        if rule_value is not None and rule_value != alert_value:
            return False
    return True


def _ordered(rules: Iterable[ApplicabilityRule]) -> list[ApplicabilityRule]:
    active = [r for r in rules if r.active is None or r.active]
    return sorted(active, key=lambda r: (-(r.priority or 0), r.id or 0))


def _verdict_from_rule(rule: ApplicabilityRule, reason: str | None = None) -> Classification:
    applicable = bool(rule.is_applicable)
    dismiss_reason = None
    if not applicable and rule.dismiss_reason:
        if rule.dismiss_reason in DISMISS_REASON_VALUES:
            dismiss_reason = rule.dismiss_reason
        else:
            logger.warning(
                "Ignoring unknown dismiss_reason on rule",
                extra={"rule_id": rule.id, "dismiss_reason": rule.dismiss_reason},
            )
    return Classification(
        applicable=applicable,
        reason=reason or rule.reason,
        dismiss_reason=dismiss_reason,
    )


def _apply_severity_floor(alert: DependabotAlertPayload, verdict: Classification) -> Classification:
    if verdict.applicable or alert.severity not in FLOOR_SEVERITIES:
        return verdict
    return Classification(
        applicable=True,
        reason=f"{alert.severity} severity - requires immediate attention",
    )


def classify_alert(
    alert: DependabotAlertPayload,
    rules: Sequence[ApplicabilityRule],
    strategies: tuple[HeuristicStrategy, ...] = DEFAULT_STRATEGIES,
) -> Classification:
    """
    Classify one alert against the given rules and heuristic strategies.

    A catch-all rule (no declared match fields) only supplies the fallback verdict; its
    result is reported with reason "no matching rule".
    """
    catch_all: ApplicabilityRule | None = None
    for rule in _ordered(rules):
        if not rule_matches(rule, alert):
            continue
        if rule.is_catch_all:
            catch_all = rule
            break
        return _verdict_from_rule(rule)

    verdict = run_heuristics(alert, strategies)
    if verdict is None:
        if catch_all is not None:
            verdict = _verdict_from_rule(catch_all, reason=NO_MATCH_REASON)
        else:
            verdict = Classification(applicable=True, reason=NO_MATCH_REASON)
    return _apply_severity_floor(alert, verdict)


def load_active_rules(db: Session) -> list[ApplicabilityRule]:
    """Active rules, highest priority first."""
    return (
        db.query(ApplicabilityRule)
        .filter(ApplicabilityRule.active.is_(True))
        .order_by(ApplicabilityRule.priority.desc(), ApplicabilityRule.id.asc())
        .all()
    )


def classify(
    db: Session,
    alert: DependabotAlertPayload,
    strategies: tuple[HeuristicStrategy, ...] = DEFAULT_STRATEGIES,
) -> Classification:
    """Classify against the rule table as it is right now (rules are re-read on every call)."""
    return classify_alert(alert, load_active_rules(db), strategies)
