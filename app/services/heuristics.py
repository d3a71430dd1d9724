"""Built-in heuristics: stack-specific knowledge about when an advisory cannot affect our deployment.

Each strategy inspects one alert and either returns a verdict or None (no opinion). Strategies
run in order; the first verdict wins. They encode keyword checks over advisory summaries, so
they stay isolated from the typed rule table in app.services.applicability.
"""

import re
from typing import Protocol

from app.schemas.alerts import Classification, DependabotAlertPayload


class HeuristicStrategy(Protocol):
    """One package family's (or one general) heuristic."""

    name: str

    def match(self, alert: DependabotAlertPayload) -> Classification | None: ...


def _summary(alert: DependabotAlertPayload) -> str:
    return (alert.security_advisory.summary or "").lower()


def _package(alert: DependabotAlertPayload) -> str:
    return (alert.package_name or "").strip().lower()


class HonoStrategy:
    """Hono is the web framework; several of its advisories target middleware or runtimes we do not use."""

    name = "hono"

    def match(self, alert: DependabotAlertPayload) -> Classification | None:
        if _package(alert) != "hono":
            return None
        summary = _summary(alert)
        if "jwk" in summary or "jwt" in summary or "algorithm confusion" in summary:
            return Classification(
                applicable=False,
                reason="We use jose library for JWT validation, not Hono JWT middleware",
                dismiss_reason="not_used",
            )
        if "servestatic" in summary and "deno" in summary:
            return Classification(
                applicable=False,
                reason="Deno-specific vulnerability - we run on Cloudflare Workers",
                dismiss_reason="inaccurate",
            )
        if "csrf" in summary:
            return Classification(
                applicable=True,
                reason="Review CSRF middleware usage in codebase",
            )
        if "body limit" in summary:
            return Classification(
                applicable=False,
                reason="Cloudflare Workers has built-in request size limits",
                dismiss_reason="tolerable_risk",
            )
        if "trierouter" in summary or "named path parameters" in summary:
            return Classification(
                applicable=False,
                reason="TrieRouter parameter override is low risk for our API design",
                dismiss_reason="tolerable_risk",
            )
        if "vary header" in summary or "cors bypass" in summary:
            return Classification(
                applicable=True,
                reason="CORS bypass could affect cross-origin security",
            )
        return None


class WranglerStrategy:
    name = "wrangler"

    def match(self, alert: DependabotAlertPayload) -> Classification | None:
        if _package(alert) == "wrangler" and alert.scope == "development":
            return Classification(
                applicable=False,
                reason="Wrangler is a development dependency, not deployed to production",
                dismiss_reason="not_used",
            )
        return None


_DOS_PATTERN = re.compile(r"denial of service|\bdos\b|\bredos\b")


class ZodStrategy:
    name = "zod"

    def match(self, alert: DependabotAlertPayload) -> Classification | None:
        if _package(alert) == "zod" and _DOS_PATTERN.search(_summary(alert)):
            return Classification(
                applicable=True,
                reason="Zod DoS could affect API endpoints - verify input validation patterns",
            )
        return None


class DevelopmentScopeStrategy:
    """Development-only dependencies are never shipped to production."""

    name = "development_scope"

    def match(self, alert: DependabotAlertPayload) -> Classification | None:
        if alert.scope == "development":
            return Classification(
                applicable=False,
                reason="Development dependency - not deployed to production",
                dismiss_reason="not_used",
            )
        return None


# Package-specific strategies first, then general ones.
DEFAULT_STRATEGIES: tuple[HeuristicStrategy, ...] = (
    HonoStrategy(),
    WranglerStrategy(),
    ZodStrategy(),
    DevelopmentScopeStrategy(),
)


def run_heuristics(
    alert: DependabotAlertPayload,
    strategies: tuple[HeuristicStrategy, ...] = DEFAULT_STRATEGIES,
) -> Classification | None:
    """Return the first strategy verdict, or None when no strategy has an opinion."""
    for strategy in strategies:
        verdict = strategy.match(alert)
        if verdict is not None:
            return verdict
    return None
