# SPDX-License-Identifier: GPL-3.0-only
"""OTP Broker - sends and validates one-time tokens."""

import datetime
import secrets
from typing import Iterable, List, Optional

from base_logger import get_logger
from otp_broker.channels import ChannelDispatcher, create_dispatcher
from otp_broker.exceptions import InvalidOTPTokenException
from otp_broker.generator import TokenGenerator
from otp_broker.providers import ProviderConfig, ProviderRegistry, load_providers
from otp_broker.types import InvalidTokenReason
from otp_broker.utils import get_int_config

logger = get_logger(__name__)


class OTPBroker:
    """Issues tokens for identifiers and validates them.

    A token is bound to an identifier within the active provider. Sending
    again replaces the previous token; a successful validation consumes it.

    Example::

        broker = create_broker()
        broker.use_provider("admins").channel(["sms"]).send("+237123456789")
        account = broker.validate("+237123456789", "12345")
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        dispatcher: ChannelDispatcher,
        generator: Optional[TokenGenerator] = None,
        ttl: Optional[datetime.timedelta] = None,
    ):
        self.providers = providers
        self.dispatcher = dispatcher
        self.generator = generator or TokenGenerator()
        self.ttl = ttl or datetime.timedelta(minutes=5)
        self._provider: Optional[ProviderConfig] = None
        self._channels: Optional[List[str]] = None

    @property
    def provider(self) -> ProviderConfig:
        """The active provider, falling back to the default one."""
        return self._provider or self.providers.get()

    def use_provider(self, name: str) -> "OTPBroker":
        """Select the provider used by subsequent calls.

        Raises:
            UnknownProviderError: If name is not registered.
        """
        self._provider = self.providers.get(name)
        return self

    def channel(self, names: Iterable[str]) -> "OTPBroker":
        """Override the channels for the next send only."""
        self._channels = list(names)
        return self

    def send(self, identifier: str):
        """Generate a token for identifier and deliver it.

        The stored token is kept even if delivery fails.

        Returns:
            The resolved or newly created account.

        Raises:
            UnknownChannelError: If a channel name is not registered.
            DeliveryFailedError: If a channel fails to deliver.
        """
        provider = self.provider
        channels, self._channels = self._channels, None

        logger.debug("Sending OTP for provider '%s'.", provider.name)
        self.dispatcher.resolve(channels)

        account = provider.repository.resolve(identifier)
        token = self.generator.generate()
        issued = provider.token_store.put(identifier, token, self.ttl)
        self.dispatcher.dispatch(
            account, token, channels, ttl=self.ttl, expires_at=issued.expires_at
        )

        logger.info("OTP sent for provider '%s'.", provider.name)
        return account

    def validate(self, identifier: str, token: str):
        """Validate token for identifier and consume it.

        A wrong token leaves the stored one in place.

        Returns:
            The verified account.

        Raises:
            InvalidOTPTokenException: If no active token exists or it differs.
        """
        provider = self.provider
        logger.debug("Validating OTP for provider '%s'.", provider.name)

        stored = provider.token_store.get(identifier)
        if stored is None:
            logger.warning("No active OTP for provider '%s'.", provider.name)
            raise InvalidOTPTokenException(InvalidTokenReason.MISSING_OR_EXPIRED)

        if not secrets.compare_digest(stored.value.encode(), str(token).encode()):
            logger.warning("Incorrect OTP for provider '%s'.", provider.name)
            raise InvalidOTPTokenException(InvalidTokenReason.MISMATCH)

        provider.token_store.invalidate(identifier)
        account = provider.repository.resolve(identifier)
        account = provider.repository.mark_verified(account)

        logger.info("OTP verified for provider '%s'.", provider.name)
        return account


def create_broker(clock=None) -> OTPBroker:
    """Build a broker from configuration."""
    return OTPBroker(
        providers=load_providers(clock=clock),
        dispatcher=create_dispatcher(),
        generator=TokenGenerator(length=get_int_config("OTP_TOKEN_LENGTH", 5)),
        ttl=datetime.timedelta(minutes=get_int_config("OTP_TOKEN_TTL_MINUTES", 5)),
    )
