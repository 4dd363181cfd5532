"""Nonce Store

Durable record of nonces sent to the OpenID provider, keyed by value.
Consistency across concurrent requests is left to the database.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sso_bridge.core.sso.errors import (
    NonceDeletionError,
    NonceLookupError,
    NoncePersistenceError,
)
from sso_bridge.infrastructure.database.models import SSONonce

logger = logging.getLogger(__name__)


class NonceStore:
    """Create, find and delete SSO nonces"""

    def __init__(self, session: AsyncSession):
        """Initialize nonce store

        Args:
            session: Database session used for every operation
        """
        self.session = session

    async def save(self, nonce: str) -> SSONonce:
        """Persist a new nonce

        Raises:
            NoncePersistenceError: If the nonce could not be committed
        """
        record = SSONonce(nonce=nonce)
        try:
            self.session.add(record)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to save SSO nonce: {e}")
            raise NoncePersistenceError(f"Failed to save nonce: {e}") from e

        logger.debug(f"Saved SSO nonce {nonce[:8]}...")
        return record

    async def find(self, nonce: str) -> Optional[SSONonce]:
        """Look up a nonce by value

        Raises:
            NonceLookupError: If the query failed
        """
        try:
            return await self.session.get(SSONonce, nonce)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to look up SSO nonce: {e}")
            raise NonceLookupError(f"Failed to retrieve nonce from db: {e}") from e

    async def delete(self, record: SSONonce) -> None:
        """Delete a nonce record

        Raises:
            NonceDeletionError: If the delete could not be committed
        """
        try:
            await self.session.delete(record)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to delete SSO nonce: {e}")
            raise NonceDeletionError(f"Failed to delete nonce: {e}") from e
