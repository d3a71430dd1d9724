"""Unit tests for app.services.credentials: app JWT claims, token exchange and the token cache."""

import asyncio
import unittest
from datetime import datetime, timezone

import httpx
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.core.config import Settings
from app.services.credentials import (
    CredentialError,
    CredentialManager,
    GitHubNotConfiguredError,
    TTLCache,
    ensure_github_configured,
)

_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
_PEM = _KEY.private_bytes(
    serialization.Encoding.PEM,
    serialization.PrivateFormat.PKCS8,
    serialization.NoEncryption(),
).decode("utf-8")

T0 = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "GITHUB_APP_ID": "12345",
        "GITHUB_APP_PRIVATE_KEY": _PEM,
        "GITHUB_INSTALLATION_ID": "678",
        "GITHUB_ORG": "acme",
    }
    values.update(overrides)
    return Settings(**values)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class TokenEndpoint:
    """MockTransport handler for POST /app/installations/{id}/access_tokens."""

    def __init__(self, clock: FakeClock, lifetime: int = 3600, status_code: int = 201) -> None:
        self.clock = clock
        self.lifetime = lifetime
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"message": "Bad credentials"})
        n = len(self.requests)
        return httpx.Response(
            self.status_code,
            json={"token": f"ghs_token_{n}", "expires_at": _iso(self.clock.now + self.lifetime)},
        )


def _manager(settings: Settings, clock: FakeClock, endpoint: TokenEndpoint) -> CredentialManager:
    return CredentialManager(
        settings,
        cache=TTLCache(clock=clock),
        transport=httpx.MockTransport(endpoint),
        clock=clock,
    )


class TestBuildAppJwt(unittest.TestCase):
    """App JWT: RS256, issuer is the app id, iat backdated 60s, exp 10 minutes out."""

    def test_claims(self) -> None:
        clock = FakeClock()
        manager = _manager(_settings(), clock, TokenEndpoint(clock))
        token = manager.build_app_jwt()
        claims = jwt.decode(
            token,
            _KEY.public_key(),
            algorithms=["RS256"],
            options={"verify_exp": False, "verify_iat": False},
        )
        self.assertEqual(claims["iss"], "12345")
        self.assertEqual(claims["iat"], T0 - 60)
        self.assertEqual(claims["exp"], T0 + 600)
        self.assertEqual(jwt.get_unverified_header(token)["alg"], "RS256")

    def test_invalid_private_key_raises_credential_error(self) -> None:
        clock = FakeClock()
        manager = _manager(_settings(GITHUB_APP_PRIVATE_KEY="not a pem key"), clock, TokenEndpoint(clock))
        with self.assertRaises(CredentialError):
            manager.build_app_jwt()

    def test_missing_app_settings(self) -> None:
        with self.assertRaises(GitHubNotConfiguredError) as ctx:
            ensure_github_configured(_settings(GITHUB_APP_ID=None, GITHUB_INSTALLATION_ID=None))
        self.assertIn("GITHUB_APP_ID", ctx.exception.message)
        self.assertIn("GITHUB_INSTALLATION_ID", ctx.exception.message)


class TestInstallationToken(unittest.TestCase):
    """get_installation_token exchanges once per cache miss and reuses the cached token."""

    def test_exchange_sends_app_jwt(self) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint(clock)
        manager = _manager(_settings(), clock, endpoint)
        token = asyncio.run(manager.get_installation_token())
        self.assertEqual(token, "ghs_token_1")
        request = endpoint.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/app/installations/678/access_tokens")
        self.assertTrue(request.headers["Authorization"].startswith("Bearer "))
        self.assertEqual(request.headers["X-GitHub-Api-Version"], "2022-11-28")

    def test_cache_hit_makes_no_network_call(self) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint(clock)
        manager = _manager(_settings(), clock, endpoint)

        async def run() -> tuple[str, str]:
            first = await manager.get_installation_token()
            clock.now += 1800
            second = await manager.get_installation_token()
            return first, second

        first, second = asyncio.run(run())
        self.assertEqual(first, second)
        self.assertEqual(len(endpoint.requests), 1)

    def test_refreshes_after_cache_ttl(self) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint(clock)
        manager = _manager(_settings(TOKEN_CACHE_TTL_SEC=3500), clock, endpoint)

        async def run() -> str:
            await manager.get_installation_token()
            clock.now += 3501
            return await manager.get_installation_token()

        self.assertEqual(asyncio.run(run()), "ghs_token_2")
        self.assertEqual(len(endpoint.requests), 2)

    def test_refreshes_when_less_than_min_validity_left(self) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint(clock, lifetime=100)
        manager = _manager(_settings(), clock, endpoint)

        async def run() -> str:
            await manager.get_installation_token()
            clock.now += 50  # 50s left < 60s minimum
            return await manager.get_installation_token()

        self.assertEqual(asyncio.run(run()), "ghs_token_2")

    def test_exchange_failure_is_surfaced(self) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint(clock, status_code=401)
        manager = _manager(_settings(), clock, endpoint)
        with self.assertRaises(CredentialError) as ctx:
            asyncio.run(manager.get_installation_token())
        self.assertEqual(ctx.exception.status_code, 401)

    def test_invalidate_forces_new_exchange(self) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint(clock)
        manager = _manager(_settings(), clock, endpoint)

        async def run() -> str:
            await manager.get_installation_token()
            manager.invalidate()
            return await manager.get_installation_token()

        self.assertEqual(asyncio.run(run()), "ghs_token_2")


class TestSettingsPrivateKey(unittest.TestCase):
    def test_escaped_newlines_are_expanded(self) -> None:
        settings = _settings(GITHUB_APP_PRIVATE_KEY="-----BEGIN KEY-----\\nabc\\n-----END KEY-----")
        self.assertEqual(
            settings.GITHUB_APP_PRIVATE_KEY.get_secret_value(),
            "-----BEGIN KEY-----\nabc\n-----END KEY-----",
        )


if __name__ == "__main__":
    unittest.main()
