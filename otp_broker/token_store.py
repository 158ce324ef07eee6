# SPDX-License-Identifier: GPL-3.0-only
"""Token storage backends.

Two interchangeable stores keep the active token per identifier:

* ``CacheTokenStore`` keeps tokens in a ``cachetools`` TLRU cache whose
  per-item lifetime is the token's expiry.
* ``DatabaseTokenStore`` keeps one ``otp_tokens`` row per identifier and
  checks expiry on read.

Both scope their keys by ``namespace`` (the provider name), so a token issued
for one provider is never visible to another.
"""

import datetime
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from cachetools import TLRUCache

from base_logger import get_logger
from otp_broker.types import Token, TokenStorageDriver
from otp_broker.utils import get_int_config

logger = get_logger(__name__)

CACHE_MAXSIZE = get_int_config("OTP_CACHE_MAXSIZE", 10000)

Clock = Callable[[], datetime.datetime]


class TokenStore(ABC):
    """Base class for token stores."""

    def __init__(self, namespace: str, clock: Optional[Clock] = None):
        self.namespace = namespace
        self.clock = clock or datetime.datetime.now

    @abstractmethod
    def put(self, identifier: str, value: str, ttl: datetime.timedelta) -> Token:
        """Store the token for identifier, replacing any previous one."""

    @abstractmethod
    def get(self, identifier: str) -> Optional[Token]:
        """Return the active token, or None if missing, consumed or expired."""

    @abstractmethod
    def invalidate(self, identifier: str) -> None:
        """Consume the current token for identifier."""

    def _new_token(
        self, identifier: str, value: str, ttl: datetime.timedelta
    ) -> Token:
        now = self.clock()
        return Token(
            identifier=identifier,
            value=value,
            created_at=now,
            expires_at=now + ttl,
        )


def _token_expiry(_key, token: Token, _now: float) -> float:
    return token.expires_at.timestamp()


def create_token_cache(maxsize: int = CACHE_MAXSIZE, clock: Optional[Clock] = None):
    """Create a TLRU cache that expires tokens at their ``expires_at``."""
    clock = clock or datetime.datetime.now
    return TLRUCache(
        maxsize=maxsize, ttu=_token_expiry, timer=lambda: clock().timestamp()
    )


class CacheTokenStore(TokenStore):
    """Token store backed by an in-process TTL cache.

    Tokens do not survive a restart. The cache may be shared between several
    stores; keys are ``(namespace, identifier)``.
    """

    def __init__(
        self,
        namespace: str,
        cache: Optional[TLRUCache] = None,
        lock: Optional[threading.Lock] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(namespace, clock)
        self._cache = cache if cache is not None else create_token_cache(clock=clock)
        self._lock = lock or threading.Lock()

    def _key(self, identifier: str) -> tuple:
        return (self.namespace, identifier)

    def put(self, identifier: str, value: str, ttl: datetime.timedelta) -> Token:
        token = self._new_token(identifier, value, ttl)
        with self._lock:
            self._cache[self._key(identifier)] = token
        logger.info("Token stored in cache for provider '%s'.", self.namespace)
        return token

    def get(self, identifier: str) -> Optional[Token]:
        with self._lock:
            return self._cache.get(self._key(identifier))

    def invalidate(self, identifier: str) -> None:
        with self._lock:
            self._cache.pop(self._key(identifier), None)
        logger.debug("Token invalidated in cache for provider '%s'.", self.namespace)


class DatabaseTokenStore(TokenStore):
    """Token store backed by the ``otp_tokens`` table.

    Expired rows are left in place until ``purge_expired`` runs.
    """

    def __init__(self, namespace: str, model=None, clock: Optional[Clock] = None):
        super().__init__(namespace, clock)
        if model is None:
            from otp_broker.db_models import OTPToken

            model = OTPToken
        self.model = model

    def _where(self, identifier: str):
        return (self.model.provider == self.namespace) & (
            self.model.identifier == identifier
        )

    def put(self, identifier: str, value: str, ttl: datetime.timedelta) -> Token:
        token = self._new_token(identifier, value, ttl)
        self.model.replace(
            provider=self.namespace,
            identifier=identifier,
            token=token.value,
            created_at=token.created_at,
            expires_at=token.expires_at,
        ).execute()
        logger.info("Token stored in database for provider '%s'.", self.namespace)
        return token

    def get(self, identifier: str) -> Optional[Token]:
        row = self.model.get_or_none(self._where(identifier))
        if row is None:
            return None

        token = Token(
            identifier=row.identifier,
            value=row.token,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )
        if token.is_expired(self.clock()):
            logger.debug("Stored token expired at %s.", token.expires_at)
            return None

        return token

    def invalidate(self, identifier: str) -> None:
        self.model.delete().where(self._where(identifier)).execute()
        logger.debug(
            "Token invalidated in database for provider '%s'.", self.namespace
        )

    def purge_expired(self) -> int:
        """Delete expired rows for this namespace.

        Returns:
            Number of rows deleted.
        """
        deleted = (
            self.model.delete()
            .where(
                (self.model.provider == self.namespace)
                & (self.model.expires_at <= self.clock())
            )
            .execute()
        )
        logger.info(
            "Purged %d expired token(s) for provider '%s'.", deleted, self.namespace
        )
        return deleted


def get_token_store(
    driver, namespace: str, cache: Optional[TLRUCache] = None, **kwargs
) -> TokenStore:
    """Build the token store for ``driver``.

    Args:
        driver: TokenStorageDriver or its string value.
        namespace: Provider name the store is scoped to.
        cache: Shared cache for the cache driver.

    Raises:
        ValueError: If driver is unknown.
    """
    driver = TokenStorageDriver(driver)

    if driver == TokenStorageDriver.DATABASE:
        return DatabaseTokenStore(namespace, **kwargs)
    return CacheTokenStore(namespace, cache=cache, **kwargs)
