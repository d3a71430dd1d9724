"""GitHub App credentials: sign app JWTs and exchange them for cached installation tokens."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Callable

import httpx
import jwt

from app.core.config import get_settings

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# App JWT claims: backdate iat for clock drift; GitHub rejects exp > 10 minutes.
JWT_CLOCK_SKEW_SEC = 60
JWT_LIFETIME_SEC = 10 * 60
JWT_ALGORITHM = "RS256"

TOKEN_CACHE_KEY = "github_installation_token"


class CredentialError(Exception):
    """Raised when the app JWT cannot be signed or the token exchange fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GitHubNotConfiguredError(Exception):
    """Raised when GitHub App settings needed for an operation are missing."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def ensure_github_configured(settings: Settings, require_org: bool = True) -> None:
    """Raise GitHubNotConfiguredError listing every missing GitHub setting."""
    missing = []
    if not settings.GITHUB_APP_ID or not settings.GITHUB_APP_ID.strip():
        missing.append("GITHUB_APP_ID")
    if settings.GITHUB_APP_PRIVATE_KEY is None:
        missing.append("GITHUB_APP_PRIVATE_KEY")
    if not settings.GITHUB_INSTALLATION_ID or not settings.GITHUB_INSTALLATION_ID.strip():
        missing.append("GITHUB_INSTALLATION_ID")
    if require_org and (not settings.GITHUB_ORG or not settings.GITHUB_ORG.strip()):
        missing.append("GITHUB_ORG")
    if missing:
        raise GitHubNotConfiguredError(
            f"GitHub is not configured; set {', '.join(missing)}."
        )


class TTLCache:
    """Minimal in-process key/value cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


def _parse_expires_at(value: str | None) -> float | None:
    """Parse GitHub's ISO-8601 expires_at into a Unix timestamp."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


class CredentialManager:
    """
    Mints app JWTs and caches the installation token until shortly before it expires.

    One instance per process. Refreshes are serialized by an asyncio.Lock; a cache hit
    with at least TOKEN_MIN_VALIDITY_SEC left makes no network call.
    """

    def __init__(
        self,
        settings: Settings,
        cache: TTLCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._cache = cache or TTLCache()
        self._transport = transport
        self._clock = clock
        self._lock = asyncio.Lock()

    def build_app_jwt(self) -> str:
        """Sign a short-lived RS256 JWT identifying the GitHub App."""
        ensure_github_configured(self._settings, require_org=False)
        now = int(self._clock())
        payload = {
            "iat": now - JWT_CLOCK_SKEW_SEC,
            "exp": now + JWT_LIFETIME_SEC,
            "iss": str(self._settings.GITHUB_APP_ID).strip(),
        }
        private_key = self._settings.GITHUB_APP_PRIVATE_KEY.get_secret_value()
        try:
            return jwt.encode(payload, private_key, algorithm=JWT_ALGORITHM)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise CredentialError(f"Failed to sign GitHub App JWT: {e}") from e

    def _cached_token(self) -> str | None:
        cached = self._cache.get(TOKEN_CACHE_KEY)
        if not cached:
            return None
        expires_at = cached.get("expires_at")
        if expires_at is not None and expires_at <= self._clock() + self._settings.TOKEN_MIN_VALIDITY_SEC:
            return None
        return cached["token"]

    async def _exchange(self) -> dict[str, Any]:
        app_jwt = self.build_app_jwt()
        installation_id = str(self._settings.GITHUB_INSTALLATION_ID).strip()
        url = (
            f"{self._settings.GITHUB_API_BASE_URL}"
            f"/app/installations/{installation_id}/access_tokens"
        )
        headers = {
            "Authorization": f"Bearer {app_jwt}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self._settings.GITHUB_API_VERSION,
            "User-Agent": self._settings.GITHUB_USER_AGENT,
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._settings.GITHUB_REQUEST_TIMEOUT_SEC,
            ) as client:
                resp = await client.post(url, headers=headers)
        except httpx.HTTPError as e:
            raise CredentialError(f"Installation token exchange failed: {e}") from e
        if resp.status_code >= 400:
            raise CredentialError(
                f"Failed to get installation token: {resp.status_code}",
                resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise CredentialError("Installation token response is not valid JSON.") from e
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise CredentialError("Installation token response missing token.")
        return {"token": token, "expires_at": _parse_expires_at(data.get("expires_at"))}

    async def get_installation_token(self) -> str:
        """Return a valid installation token, exchanging a fresh app JWT on cache miss."""
        token = self._cached_token()
        if token is not None:
            return token
        async with self._lock:
            token = self._cached_token()
            if token is not None:
                return token
            entry = await self._exchange()
            ttl = float(self._settings.TOKEN_CACHE_TTL_SEC)
            if entry["expires_at"] is not None:
                ttl = min(ttl, entry["expires_at"] - self._clock())
            if ttl > 0:
                self._cache.set(TOKEN_CACHE_KEY, entry, ttl)
            logger.info("Refreshed GitHub installation token", extra={"cache_ttl_sec": int(ttl)})
            return entry["token"]

    def invalidate(self) -> None:
        """Drop the cached token (e.g. after the upstream rejected it)."""
        self._cache.delete(TOKEN_CACHE_KEY)


@lru_cache
def get_credential_manager() -> CredentialManager:
    """Process-wide credential manager built from application settings."""
    return CredentialManager(get_settings())
