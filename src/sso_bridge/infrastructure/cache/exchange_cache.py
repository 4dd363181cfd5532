"""Exchange Cache

Maps authorization codes to the identity obtained from the provider so that
a code, which the provider accepts only once, can be consulted again by the
application between the 2FA decision and the final redemption.

Entries are bounded by age and count. Eviction before redemption is a
normal failure path: the caller has to restart the login.

Redeemed codes leave a marker behind (same TTL) so that "never exchanged"
and "already redeemed" can be told apart.
"""

import asyncio
import logging
import time
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from cachetools import TTLCache

from sso_bridge.core.sso.errors import CodeAlreadyRedeemedError, CodeNotExchangedError
from sso_bridge.domain.models import CachedIdentity, ExchangeState

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 10 * 60
DEFAULT_MAX_ENTRIES = 1000


class ExchangeCache:
    """Concurrency-safe, time-bounded code -> identity mapping

    Built once at startup and passed to the SSO service. All operations
    are atomic with respect to each other.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize exchange cache

        Args:
            ttl_seconds: Lifetime of an entry
            max_entries: Capacity; least recently used entries go first
            timer: Clock used for expiry (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._identities: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)
        self._redeemed: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)
        self._lock = asyncio.Lock()
        self._exchange_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    async def get(self, code: str) -> Optional[CachedIdentity]:
        """Return the cached identity for a code, if any"""
        async with self._lock:
            # TTLCache.get re-reads the timer after its membership check
            try:
                return self._identities[code]
            except KeyError:
                return None

    async def put(self, code: str, identity: CachedIdentity) -> None:
        """Insert or replace the identity for a code"""
        async with self._lock:
            self._redeemed.pop(code, None)
            self._identities[code] = identity

    async def invalidate(self, code: str) -> None:
        """Drop the identity for a code"""
        async with self._lock:
            self._identities.pop(code, None)

    async def state(self, code: str) -> ExchangeState:
        """Current lifecycle state of a code"""
        async with self._lock:
            return self._state(code)

    async def take(self, code: str) -> CachedIdentity:
        """Move a code from EXCHANGED to REDEEMED and return its identity

        Only one caller can succeed per exchanged code.

        Raises:
            CodeNotExchangedError: Code was never exchanged or expired
            CodeAlreadyRedeemedError: Code was redeemed before
        """
        async with self._lock:
            state = self._state(code)
            if state is ExchangeState.REDEEMED:
                raise CodeAlreadyRedeemedError("Authorization code has already been redeemed")
            if state is ExchangeState.INITIATED:
                raise CodeNotExchangedError("Failed to retrieve user info from sso cache")

            # TTLCache.pop re-reads the timer, so the entry can expire after the state check
            try:
                identity = self._identities.pop(code)
            except KeyError:
                raise CodeNotExchangedError("Failed to retrieve user info from sso cache") from None
            self._redeemed[code] = True
            return identity

    @asynccontextmanager
    async def exchange_lock(self, code: str) -> AsyncIterator[None]:
        """Serialize provider exchanges for the same code"""
        lock = self._exchange_locks.get(code)
        if lock is None:
            lock = asyncio.Lock()
            self._exchange_locks[code] = lock
        async with lock:
            yield

    def _state(self, code: str) -> ExchangeState:
        if code in self._identities:
            return ExchangeState.EXCHANGED
        if code in self._redeemed:
            return ExchangeState.REDEEMED
        return ExchangeState.INITIATED
