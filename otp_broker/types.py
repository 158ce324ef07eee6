# SPDX-License-Identifier: GPL-3.0-only
"""Common type definitions for the broker."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class TokenStorageDriver(Enum):
    """Token storage backends."""

    CACHE = "cache"
    DATABASE = "database"


class InvalidTokenReason(Enum):
    """Why a presented token was rejected."""

    MISSING_OR_EXPIRED = "missing_or_expired"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class Token:
    """The active token for an identifier."""

    identifier: str
    value: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Check if token is expired at ``now``."""
        return now >= self.expires_at


@dataclass(frozen=True)
class DeliveryPayload:
    """What a channel receives for a single delivery."""

    destination: str
    token: str
    message: str
    ttl: Optional[timedelta] = None
    expires_at: Optional[datetime] = None
