"""GitHub REST client: authenticated calls with retries, pagination, and Dependabot alert endpoints."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Any, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import get_settings
from app.schemas.alerts import DependabotAlertPayload, Repository
from app.services.credentials import GitHubNotConfiguredError, get_credential_manager

if TYPE_CHECKING:
    from tenacity.wait import WaitBaseT

    from app.core.config import Settings
    from app.services.credentials import CredentialManager

logger = logging.getLogger(__name__)

# Safety limit on pages followed for one list endpoint.
MAX_PAGES = 100

# Upstream limit on dismissed_comment length.
MAX_DISMISS_COMMENT_LEN = 280

RETRYABLE_EXCEPTIONS = (httpx.TimeoutException, httpx.NetworkError)


class GitHubApiError(Exception):
    """Raised when GitHub returns a non-2xx response. Carries status and response body."""

    def __init__(self, status_code: int, body: str, method: str = "", path: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path
        self.message = f"GitHub API error {status_code}: {body[:500]}"
        super().__init__(self.message)


class GitHubClient:
    """
    Thin async wrapper over the GitHub REST API.

    Usage:
        async with GitHubClient(settings, credentials) as client:
            repos = await client.list_org_repos()

    Every call fetches the current installation token from the CredentialManager.
    Transport errors are retried with exponential backoff; HTTP errors are not.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialManager,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait: WaitBaseT | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._transport = transport
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, max=8)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GitHubClient:
        self._client = httpx.AsyncClient(
            base_url=self._settings.GITHUB_API_BASE_URL,
            timeout=self._settings.GITHUB_REQUEST_TIMEOUT_SEC,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _headers(self) -> dict[str, str]:
        token = await self._credentials.get_installation_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self._settings.GITHUB_API_VERSION,
            "User-Agent": self._settings.GITHUB_USER_AGENT,
        }

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        headers = await self._headers()
        return await self._client.request(method, path, json=body, params=params, headers=headers)

    async def call(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request and return the parsed JSON (None for empty responses)."""
        if self._client is None:
            raise RuntimeError("GitHubClient must be used as an async context manager")
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.GITHUB_MAX_RETRIES),
            wait=self._retry_wait,
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
            reraise=True,
        )
        resp = await retrying(self._send, method, path, body, params)
        if resp.status_code == 401:
            # Token may have been revoked early; next call exchanges a new one.
            self._credentials.invalidate()
        if resp.status_code >= 400:
            raise GitHubApiError(resp.status_code, resp.text or "", method, path)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def paginate(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Read a page-numbered list endpoint until an empty page is returned."""
        items: list[Any] = []
        page = 1
        while page <= MAX_PAGES:
            query = dict(params or {})
            query.update({"per_page": self._settings.GITHUB_PER_PAGE, "page": page})
            batch = await self.call("GET", path, params=query)
            if not batch:
                break
            items.extend(batch)
            page += 1
        else:
            logger.warning("Pagination stopped at page limit", extra={"path": path, "pages": MAX_PAGES})
        return items

    async def list_org_repos(self, org: str | None = None) -> list[Repository]:
        org = org or self._settings.GITHUB_ORG
        if not org:
            raise GitHubNotConfiguredError("GITHUB_ORG is not set.")
        raw = await self.paginate(f"/orgs/{org}/repos")
        return [Repository.model_validate(r) for r in raw]

    async def list_open_dependabot_alerts(self, repo_full_name: str) -> list[DependabotAlertPayload]:
        raw = await self.paginate(
            f"/repos/{repo_full_name}/dependabot/alerts", params={"state": "open"}
        )
        return [DependabotAlertPayload.model_validate(a) for a in raw]

    async def dismiss_dependabot_alert(
        self,
        repo_full_name: str,
        alert_number: int,
        reason: str,
        comment: str,
    ) -> Any:
        """PATCH the alert to dismissed with a reason code and comment (truncated to the upstream limit)."""
        return await self.call(
            "PATCH",
            f"/repos/{repo_full_name}/dependabot/alerts/{alert_number}",
            body={
                "state": "dismissed",
                "dismissed_reason": reason,
                "dismissed_comment": comment[:MAX_DISMISS_COMMENT_LEN],
            },
        )


ClientFactory = Callable[[], AbstractAsyncContextManager[GitHubClient]]


def get_client_factory() -> ClientFactory:
    """Dependency: factory producing GitHub clients bound to the process credential manager."""
    settings = get_settings()
    credentials = get_credential_manager()
    return lambda: GitHubClient(settings, credentials)
