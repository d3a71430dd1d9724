"""Admin API key check and GitHub webhook signature verification."""

import hashlib
import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status

from app.core.config import Settings, get_settings

ADMIN_KEY_HEADER = "X-Admin-Key"
SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_webhook_signature(secret: str, body: bytes) -> str:
    """Return the X-Hub-Signature-256 value GitHub sends for this body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time comparison of the received signature against the expected one."""
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    expected = compute_webhook_signature(secret, body)
    return hmac.compare_digest(expected, signature.strip())


def require_admin_key(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    key: Annotated[str | None, Query()] = None,
) -> None:
    """
    Dependency: require the shared admin key as X-Admin-Key header or ?key= query parameter.
    Raises 503 when no key is configured (never fail open) and 401 on mismatch.
    """
    if settings.ADMIN_API_KEY is None or not settings.ADMIN_API_KEY.get_secret_value():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_API_KEY is not configured.",
        )
    supplied = request.headers.get(ADMIN_KEY_HEADER) or key
    if not supplied or not hmac.compare_digest(
        supplied.encode("utf-8"),
        settings.ADMIN_API_KEY.get_secret_value().encode("utf-8"),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
