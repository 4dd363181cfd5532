"""SSO Data Models

Purpose: Define data structures for the OpenID Connect code exchange

Key Components:
- ExchangeState: Lifecycle of an authorization code inside this service
- CachedIdentity: Identity captured by the first code exchange
- AuthorizationRequest: Provider redirect URL with its CSRF state and nonce
- ProviderMetadata / TokenResponse / UserInfoClaims: provider payloads
- IdentityClaims: Claims read from the provider's ID token
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ExchangeState(Enum):
    """State of an authorization code

    INITIATED: nonce persisted, code not yet exchanged with the provider
    EXCHANGED: identity cached, code may be consulted again
    REDEEMED: terminal, refresh token released and nonce consumed
    """
    INITIATED = "initiated"
    EXCHANGED = "exchanged"
    REDEEMED = "redeemed"


@dataclass(frozen=True)
class CachedIdentity:
    """Identity obtained from a successful provider exchange

    Attributes:
        nonce: Nonce echoed in the ID token
        refresh_token: Refresh token, empty string if the provider issued none
        email: Email resolved from the ID token or the userinfo endpoint
    """
    nonce: str
    refresh_token: str
    email: str


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization URL together with the secrets embedded in it"""
    url: str
    state: str
    nonce: str


class ProviderMetadata(BaseModel):
    """Subset of the OpenID provider discovery document"""

    model_config = ConfigDict(extra="ignore")

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: Optional[str] = None
    jwks_uri: Optional[str] = None
    token_endpoint_auth_methods_supported: Optional[list[str]] = None


class TokenResponse(BaseModel):
    """Token endpoint response for the authorization code grant"""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_in: Optional[int] = None


class UserInfoClaims(BaseModel):
    """Claims returned by the userinfo endpoint"""

    model_config = ConfigDict(extra="allow")

    sub: Optional[str] = None
    email: Optional[str] = None


class IdentityClaims(BaseModel):
    """Claims the exchange needs from the ID token"""

    model_config = ConfigDict(extra="ignore")

    exp: int
    email: Optional[str] = None
    nonce: str
