"""SSO API Models

Purpose: Request/response models for the SSO endpoints
"""

from pydantic import BaseModel, Field


class CodeRequest(BaseModel):
    """Authorization code returned to the redirect URL by the provider"""

    code: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Authorization code issued by the OpenID provider",
    )


class ExchangeResponse(BaseModel):
    """Email of the authenticated user, used for the 2FA decision"""

    email: str


class RedeemResponse(BaseModel):
    """Refresh token released after 2FA"""

    refresh_token: str = Field(
        ...,
        description="Provider refresh token; empty when the provider issued none",
    )
