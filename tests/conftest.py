"""
Pytest configuration and fixtures for SSO Bridge tests.

Provides fixtures for:
- Database session (SQLite via aiosqlite)
- A fake OpenID provider served through httpx.MockTransport
- ID token construction
- Exchange cache, provider client and SSO service wired together
"""

import time
from typing import AsyncGenerator, Optional
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from sso_bridge.core.sso.provider import OIDCProviderClient
from sso_bridge.core.sso.service import SSOService
from sso_bridge.infrastructure.cache.exchange_cache import ExchangeCache
from sso_bridge.infrastructure.database.models import Base

ISSUER = "https://idp.example.com"
CLIENT_ID = "sso-bridge-test"
CLIENT_SECRET = "test-secret"
REDIRECT_URI = "https://app.example.com/identity/connect/oidc-signin"


def make_id_token(**claims) -> str:
    """Build an HS256 ID token; the signature is never checked by the service."""
    payload = {
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "sub": "user-123",
        "exp": int(time.time()) + 300,
    }
    payload.update({k: v for k, v in claims.items() if v is not None})
    return jwt.encode(payload, "not-the-provider-key", algorithm="HS256")


class FakeProvider:
    """In-memory OpenID provider

    Codes are registered with `add_code`; each code can be exchanged once,
    like a real token endpoint.
    """

    def __init__(self):
        self.metadata = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{ISSUER}/authorize",
            "token_endpoint": f"{ISSUER}/token",
            "userinfo_endpoint": f"{ISSUER}/userinfo",
            "jwks_uri": f"{ISSUER}/jwks",
        }
        self.codes: dict[str, dict] = {}
        self.userinfo: dict = {"sub": "user-123"}
        self.discovery_status = 200
        self.userinfo_status = 200
        self.token_calls: list[dict] = []
        self.userinfo_calls: list[str] = []
        self.discovery_calls = 0
        self.token_auth_headers: list[Optional[str]] = []
        self.required_auth_method: Optional[str] = None

    def add_code(
        self,
        code: str,
        email: Optional[str] = "alice@example.com",
        nonce: Optional[str] = "n-1",
        refresh_token: Optional[str] = "rt-1",
        id_token: Optional[str] = "__build__",
        access_token: str = "at-1",
    ) -> None:
        body = {"access_token": access_token, "token_type": "Bearer", "expires_in": 3600}
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        if id_token == "__build__":
            body["id_token"] = make_id_token(email=email, nonce=nonce)
        elif id_token is not None:
            body["id_token"] = id_token
        self.codes[code] = body

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            self.discovery_calls += 1
            return httpx.Response(self.discovery_status, json=self.metadata)

        if path == "/token":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.token_calls.append(form)
            authorization = request.headers.get("Authorization")
            self.token_auth_headers.append(authorization)

            if self.required_auth_method == "client_secret_basic" and not (
                authorization and authorization.startswith("Basic ")
            ):
                return httpx.Response(401, json={"error": "invalid_client"})
            if self.required_auth_method == "client_secret_post" and "client_secret" not in form:
                return httpx.Response(401, json={"error": "invalid_client"})

            body = self.codes.pop(form.get("code"), None)
            if body is None:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json=body)

        if path == "/userinfo":
            self.userinfo_calls.append(request.headers.get("Authorization", ""))
            return httpx.Response(self.userinfo_status, json=self.userinfo)

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class TokenSequence:
    """Deterministic state/nonce generator: state-1, n-1, state-2, n-2, ..."""

    def __init__(self):
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        index = (self.count + 1) // 2
        return f"state-{index}" if self.count % 2 else f"n-{index}"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create test database engine."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test_db.sqlite'}", poolclass=NullPool, echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Fake OpenID provider"""
    return FakeProvider()


@pytest.fixture
def provider_client(fake_provider) -> OIDCProviderClient:
    """Provider client talking to the fake provider"""
    return OIDCProviderClient(
        issuer_url=ISSUER,
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        redirect_uri=REDIRECT_URI,
        transport=fake_provider.transport,
        token_factory=TokenSequence(),
    )


@pytest.fixture
def exchange_cache() -> ExchangeCache:
    """Fresh exchange cache per test"""
    return ExchangeCache()


@pytest.fixture
def sso_service(provider_client, exchange_cache) -> SSOService:
    """SSO service wired to the fake provider"""
    return SSOService(provider=provider_client, cache=exchange_cache)


@pytest.fixture
def id_token_factory():
    """Build ID tokens with arbitrary claims"""
    return make_id_token
