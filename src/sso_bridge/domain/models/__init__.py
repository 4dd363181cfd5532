"""Domain models for SSO Bridge"""

from sso_bridge.domain.models.api_sso import (
    CodeRequest,
    ExchangeResponse,
    RedeemResponse,
)
from sso_bridge.domain.models.sso import (
    AuthorizationRequest,
    CachedIdentity,
    ExchangeState,
    IdentityClaims,
    ProviderMetadata,
    TokenResponse,
    UserInfoClaims,
)

__all__ = [
    # SSO models
    "AuthorizationRequest",
    "CachedIdentity",
    "ExchangeState",
    "IdentityClaims",
    "ProviderMetadata",
    "TokenResponse",
    "UserInfoClaims",
    # API models
    "CodeRequest",
    "ExchangeResponse",
    "RedeemResponse",
]
