"""SSO Routes

Purpose: FastAPI routes for the OpenID Connect sign-in flow

Key Endpoints:
- GET /sso/authorize: Redirect to the provider, nonce persisted
- POST /sso/exchange: Authorization code -> email (for the 2FA decision)
- POST /sso/redeem: Authorization code -> refresh token (after 2FA)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sso_bridge.config.settings import Settings, get_settings
from sso_bridge.core.sso.errors import SSOError
from sso_bridge.core.sso.provider import OIDCProviderClient
from sso_bridge.core.sso.service import SSOService
from sso_bridge.domain.models import CodeRequest, ExchangeResponse, RedeemResponse
from sso_bridge.infrastructure.cache.exchange_cache import ExchangeCache
from sso_bridge.infrastructure.database.session import get_db

router = APIRouter(prefix="/api/v1/sso", tags=["sso"])
logger = logging.getLogger(__name__)


def _to_http_error(error: SSOError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def get_sso_service(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SSOService:
    """Get the SSO service, building it on first use

    The exchange cache is created at startup; the service is built lazily
    so configuration errors are reported per request.
    """
    if not settings.sso_enabled:
        raise HTTPException(status_code=404, detail="SSO is not enabled")

    service = getattr(request.app.state, "sso_service", None)
    if service is None:
        cache: ExchangeCache = request.app.state.exchange_cache
        try:
            provider = OIDCProviderClient.from_settings(settings)
        except SSOError as e:
            logger.error(f"SSO misconfigured: {e.message}")
            raise _to_http_error(e)
        service = SSOService(provider=provider, cache=cache)
        request.app.state.sso_service = service
    return service


@router.get("/authorize", response_class=RedirectResponse, status_code=307)
async def authorize(
    service: SSOService = Depends(get_sso_service),
    db: AsyncSession = Depends(get_db),
):
    """Redirect the browser to the OpenID provider"""
    try:
        url = await service.authorize_url(db)
    except SSOError as e:
        raise _to_http_error(e)
    return RedirectResponse(url=url, status_code=307)


@router.post("/exchange", response_model=ExchangeResponse)
async def exchange(
    body: CodeRequest,
    service: SSOService = Depends(get_sso_service),
):
    """Resolve an authorization code to the user's email

    May be called again with the same code until it is redeemed.
    """
    try:
        email = await service.exchange_code(body.code)
    except SSOError as e:
        logger.warning(f"SSO exchange failed: {e.message}")
        raise _to_http_error(e)
    return ExchangeResponse(email=email)


@router.post("/redeem", response_model=RedeemResponse)
async def redeem(
    body: CodeRequest,
    service: SSOService = Depends(get_sso_service),
    db: AsyncSession = Depends(get_db),
):
    """Release the refresh token for an exchanged code, exactly once"""
    try:
        refresh_token = await service.redeem(body.code, db)
    except SSOError as e:
        logger.warning(f"SSO redemption failed: {e.message}")
        raise _to_http_error(e)
    return RedeemResponse(refresh_token=refresh_token)
