"""SSO code exchange and redemption.

Flow for one login:

    authorize_url()       nonce persisted, user sent to the provider
    exchange_code(code)   code traded for tokens once, email returned
    ... 2FA decision by the caller ...
    exchange_code(code)   optional, served from the exchange cache
    redeem(code, db)      nonce consumed, refresh token released once

The provider accepts a code only once; the exchange cache keeps what the
first exchange learned so the application can consult the code again. Only
the email leaves `exchange_code`; the refresh token is released by `redeem`.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from sso_bridge.core.sso.claims import IdentityTokenParser, UnverifiedIdentityTokenParser
from sso_bridge.core.sso.errors import (
    CodeAlreadyRedeemedError,
    MissingEmailError,
    MissingIdentityTokenError,
    NonceNotFoundError,
)
from sso_bridge.core.sso.provider import OIDCProviderClient
from sso_bridge.domain.models import CachedIdentity, ExchangeState
from sso_bridge.infrastructure.cache.exchange_cache import ExchangeCache
from sso_bridge.infrastructure.database.nonce_store import NonceStore

logger = logging.getLogger(__name__)


class SSOService:
    """Authorization, code exchange and redemption against one provider"""

    def __init__(
        self,
        provider: OIDCProviderClient,
        cache: ExchangeCache,
        token_parser: Optional[IdentityTokenParser] = None,
    ):
        """Initialize SSO service

        Args:
            provider: OIDC client for the configured provider
            cache: Shared exchange cache
            token_parser: ID token claim parser (default: unverified)
        """
        self.provider = provider
        self.cache = cache
        self.token_parser = token_parser or UnverifiedIdentityTokenParser()

    async def authorize_url(self, db: AsyncSession) -> str:
        """Build the provider redirect URL and persist its nonce

        The nonce is committed before the URL is returned.

        Raises:
            DiscoveryError: Provider metadata unavailable
            NoncePersistenceError: Nonce could not be stored
        """
        request = await self.provider.authorize_url()
        await NonceStore(db).save(request.nonce)

        logger.info("Issued SSO authorization URL")
        return request.url

    async def exchange_code(self, code: str) -> str:
        """Resolve an authorization code to the user's email

        The first call exchanges the code with the provider and caches the
        identity; later calls for the same code return the cached email.

        Raises:
            CodeAlreadyRedeemedError: Code was redeemed before
            TokenExchangeError: Token endpoint failure
            MissingIdentityTokenError: No id_token in the token response
            IdentityTokenDecodeError: ID token claims unreadable
            UserInfoError: Userinfo endpoint missing or failed
            MissingEmailError: No email in ID token or userinfo
        """
        async with self.cache.exchange_lock(code):
            if await self.cache.state(code) is ExchangeState.REDEEMED:
                raise CodeAlreadyRedeemedError("Authorization code has already been redeemed")

            cached = await self.cache.get(code)
            if cached is not None:
                return cached.email

            identity = await self._exchange_with_provider(code)
            await self.cache.put(code, identity)

        logger.info(f"Exchanged SSO authorization code for {identity.email}")
        return identity.email

    async def redeem(self, code: str, db: AsyncSession) -> str:
        """Consume the cached identity and its nonce, return the refresh token

        The cache entry is removed before the nonce is touched, so a failed
        nonce lookup or delete still ends the code's lifecycle.

        Raises:
            CodeNotExchangedError: Code never exchanged, or entry expired
            CodeAlreadyRedeemedError: Code was redeemed before
            NonceNotFoundError: Nonce from the ID token is not stored
            NonceLookupError: Nonce store could not be queried
            NonceDeletionError: Nonce could not be deleted
        """
        identity = await self.cache.take(code)

        store = NonceStore(db)
        record = await store.find(identity.nonce)
        if record is None:
            logger.warning(f"SSO redemption rejected for {identity.email}: unknown nonce")
            raise NonceNotFoundError("Failed to retrieve nonce from db")

        await store.delete(record)

        logger.info(f"Redeemed SSO authorization code for {identity.email}")
        return identity.refresh_token

    async def _exchange_with_provider(self, code: str) -> CachedIdentity:
        tokens = await self.provider.exchange_code(code)

        refresh_token = tokens.refresh_token or ""

        if not tokens.id_token:
            raise MissingIdentityTokenError("Token response did not contain an id_token")

        claims = self.token_parser.parse(tokens.id_token)

        email = claims.email
        if not email:
            user_info = await self.provider.user_info(tokens.access_token)
            email = user_info.email
        if not email:
            raise MissingEmailError("Neither id token nor userinfo contained an email")

        return CachedIdentity(nonce=claims.nonce, refresh_token=refresh_token, email=email)
