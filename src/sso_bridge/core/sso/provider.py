"""OpenID Connect provider client.

Speaks the parts of OIDC the SSO flow needs:
- Discovery (.well-known/openid-configuration)
- Authorization URL for the authorization code flow
- Authorization code exchange at the token endpoint
- Userinfo lookup

Example Configuration:
    SSO_ENABLED=true
    SSO_ISSUER_URL=https://accounts.google.com
    SSO_CLIENT_ID=xxx.apps.googleusercontent.com
    SSO_CLIENT_SECRET=GOCSPX-xxx
    SSO_REDIRECT_URL=https://app.example.com/identity/connect/oidc-signin
"""

import logging
import secrets
from typing import Callable, Optional
from urllib.parse import urlencode, urlparse

import httpx
from pydantic import ValidationError

from sso_bridge.config.settings import Settings
from sso_bridge.core.sso.errors import (
    ConfigurationError,
    DiscoveryError,
    TokenExchangeError,
    UserInfoError,
)
from sso_bridge.domain.models import (
    AuthorizationRequest,
    ProviderMetadata,
    TokenResponse,
    UserInfoClaims,
)

logger = logging.getLogger(__name__)


def _random_token() -> str:
    return secrets.token_urlsafe(32)


def _validate_url(name: str, value: str) -> str:
    parsed = urlparse(value or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"Invalid {name}: {value!r}")
    return value


class OIDCProviderClient:
    """Client bound to one provider and one registered application

    Metadata is discovered on first use and kept for the life of the client.
    """

    def __init__(
        self,
        issuer_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: Optional[list[str]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_factory: Callable[[], str] = _random_token,
    ):
        """Initialize provider client

        Args:
            issuer_url: OIDC issuer URL (e.g., https://accounts.google.com)
            client_id: OAuth 2.0 client ID
            client_secret: OAuth 2.0 client secret
            redirect_uri: Callback URL registered with the provider
            scopes: Scopes requested besides `openid` (default: email profile)
            timeout: HTTP timeout in seconds
            transport: httpx transport override (tests)
            token_factory: Generator for CSRF state and nonce values

        Raises:
            ConfigurationError: If the issuer or redirect URL is invalid
        """
        self.issuer_url = _validate_url("issuer URL", issuer_url).rstrip("/")
        self.redirect_uri = _validate_url("redirect URL", redirect_uri)
        if not client_id:
            raise ConfigurationError("SSO client id is not configured")
        self.client_id = client_id
        self.client_secret = client_secret

        requested = scopes if scopes is not None else ["email", "profile"]
        self.scopes = ["openid"] + [s for s in requested if s != "openid"]

        self.timeout = timeout
        self._transport = transport
        self._token_factory = token_factory
        self._metadata: Optional[ProviderMetadata] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OIDCProviderClient":
        """Build a client from application settings"""
        return cls(
            issuer_url=settings.sso_issuer_url,
            client_id=settings.sso_client_id,
            client_secret=settings.sso_client_secret,
            redirect_uri=settings.sso_redirect_url,
            scopes=settings.sso_scope_list,
            timeout=settings.sso_http_timeout_seconds,
            transport=transport,
        )

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    @staticmethod
    def _token_endpoint_auth_method(metadata: ProviderMetadata) -> str:
        """Client authentication for the token endpoint

        HTTP Basic unless the provider only advertises `client_secret_post`.
        An absent list means `client_secret_basic` (OIDC Discovery 1.0).
        """
        supported = metadata.token_endpoint_auth_methods_supported or []
        if "client_secret_post" in supported and "client_secret_basic" not in supported:
            return "client_secret_post"
        return "client_secret_basic"

    async def discover(self) -> ProviderMetadata:
        """Fetch the provider discovery document

        Raises:
            DiscoveryError: Request failed or the document is unusable
        """
        if self._metadata is not None:
            return self._metadata

        discovery_url = f"{self.issuer_url}/.well-known/openid-configuration"
        try:
            async with self._http() as client:
                response = await client.get(discovery_url)
                response.raise_for_status()
                metadata = ProviderMetadata.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"OIDC discovery failed for {discovery_url}: {e}")
            raise DiscoveryError(f"Failed to discover OpenID provider: {e}") from e

        if metadata.issuer.rstrip("/") != self.issuer_url:
            raise DiscoveryError(
                f"Failed to discover OpenID provider: issuer mismatch ({metadata.issuer})"
            )

        self._metadata = metadata
        logger.info(f"OIDC discovery loaded from {discovery_url}")
        return metadata

    async def authorize_url(self) -> AuthorizationRequest:
        """Build an authorization code flow URL with fresh state and nonce"""
        metadata = await self.discover()

        state = self._token_factory()
        nonce = self._token_factory()
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "state": state,
            "scope": " ".join(self.scopes),
            "redirect_uri": self.redirect_uri,
            "nonce": nonce,
        }

        separator = "&" if "?" in metadata.authorization_endpoint else "?"
        url = f"{metadata.authorization_endpoint}{separator}{urlencode(params)}"
        return AuthorizationRequest(url=url, state=state, nonce=nonce)

    async def exchange_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code at the token endpoint

        Raises:
            TokenExchangeError: Endpoint unreachable, code rejected,
                or response unreadable
        """
        metadata = await self.discover()

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
        }

        auth = None
        if self._token_endpoint_auth_method(metadata) == "client_secret_post":
            data["client_secret"] = self.client_secret
        else:
            auth = httpx.BasicAuth(self.client_id, self.client_secret)

        try:
            async with self._http() as client:
                response = await client.post(
                    metadata.token_endpoint,
                    data=data,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"OIDC token endpoint unreachable: {e}")
            raise TokenExchangeError(f"Failed to contact token endpoint: {e}") from e

        if response.status_code != 200:
            logger.error(f"OIDC token exchange failed: {response.status_code} {response.text}")
            raise TokenExchangeError(
                f"Failed to contact token endpoint: status {response.status_code}"
            )

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenExchangeError(f"Failed to contact token endpoint: invalid response: {e}") from e

    async def user_info(self, access_token: str) -> UserInfoClaims:
        """Fetch claims from the userinfo endpoint

        Raises:
            UserInfoError: No userinfo endpoint, or the request failed
        """
        metadata = await self.discover()
        if not metadata.userinfo_endpoint:
            raise UserInfoError("No user_info endpoint")

        try:
            async with self._http() as client:
                response = await client.get(
                    metadata.userinfo_endpoint,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                return UserInfoClaims.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"OIDC userinfo request failed: {e}")
            raise UserInfoError(f"Request to user_info endpoint failed: {e}") from e
