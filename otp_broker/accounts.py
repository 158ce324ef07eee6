# SPDX-License-Identifier: GPL-3.0-only
"""Account resolution."""

import datetime
from abc import ABC, abstractmethod
from typing import Callable, Optional

from peewee import IntegrityError

from base_logger import get_logger

logger = get_logger(__name__)


class AccountRepository(ABC):
    """Maps identifiers to account records."""

    @abstractmethod
    def resolve(self, identifier: str):
        """Find the account for identifier, creating it if absent."""

    @abstractmethod
    def mark_verified(self, account):
        """Mark the account as verified and return it."""


class PeeweeAccountRepository(AccountRepository):
    """Account repository over a peewee Account model.

    Relies on the unique index on ``identifier``: a lost insert race surfaces
    as ``IntegrityError`` and the winner's row is returned instead.
    """

    def __init__(
        self, model, clock: Optional[Callable[[], datetime.datetime]] = None
    ):
        self.model = model
        self.clock = clock or datetime.datetime.now

    @property
    def database(self):
        return self.model._meta.database

    def find(self, identifier: str):
        """Find an account by identifier."""
        return self.model.get_or_none(self.model.identifier == identifier)

    def resolve(self, identifier: str):
        account = self.find(identifier)
        if account:
            return account

        try:
            with self.database.atomic():
                account = self.model.create(identifier=identifier)
            logger.info(
                "Account created in table '%s'.", self.model._meta.table_name
            )
            return account
        except IntegrityError:
            logger.debug("Account created concurrently, reading existing record.")
            return self.model.get(self.model.identifier == identifier)

    def mark_verified(self, account):
        (
            self.model.update(verified_at=self.clock())
            .where(
                (self.model.id == account.id) & (self.model.verified_at.is_null())
            )
            .execute()
        )
        account = self.model.get_by_id(account.id)
        logger.info("Account verified in table '%s'.", self.model._meta.table_name)
        return account
