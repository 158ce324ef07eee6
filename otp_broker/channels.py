# SPDX-License-Identifier: GPL-3.0-only
"""OTP delivery channels and dispatch."""

import datetime
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import phonenumbers
import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from base_logger import get_logger
from otp_broker.exceptions import (
    ChannelSendError,
    DeliveryFailedError,
    UnknownChannelError,
)
from otp_broker.types import DeliveryPayload
from otp_broker.utils import (
    get_configs,
    get_json_config,
    get_list_config,
    get_phonenumber_region_code,
    import_string,
)

logger = get_logger(__name__)

TWILIO_ACCOUNT_SID = get_configs("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = get_configs("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = get_configs("TWILIO_PHONE_NUMBER")

QUEUEDROID_API_URL = get_configs(
    "QUEUEDROID_API_URL", default_value="https://api.queuedroid.com/v1/messages/send"
)
QUEUEDROID_API_KEY = get_configs("QUEUEDROID_API_KEY")
QUEUEDROID_EXCHANGE_ID = get_configs("QUEUEDROID_EXCHANGE_ID")
QUEUEDROID_QUEUE_ID = get_configs("QUEUEDROID_QUEUE_ID")

SMS_OTP_ALLOWED_COUNTRIES = [
    code.upper() for code in get_list_config("SMS_OTP_ALLOWED_COUNTRIES")
]

EMAIL_SERVICE_URL = get_configs("EMAIL_SERVICE_URL")
EMAIL_SERVICE_API_KEY = get_configs("EMAIL_SERVICE_API_KEY")
EMAIL_VERIFICATION_SENDER_ADDRESS = get_configs("EMAIL_VERIFICATION_SENDER_ADDRESS")
EMAIL_SUBJECT = get_configs(
    "EMAIL_SUBJECT", default_value="{{ project_name }} Verification Code"
)

OTP_PROJECT_NAME = get_configs("OTP_PROJECT_NAME", default_value="RelaySMS")

MessageBuilder = Callable[[object, str], str]


def default_message_builder(account, token: str) -> str:
    """Render the default verification message."""
    return f"Your {OTP_PROJECT_NAME} Verification Code is: {token}"


_message_builder: MessageBuilder = default_message_builder


def set_message_builder(builder: MessageBuilder) -> None:
    """Register the message builder used by dispatchers built afterwards."""
    global _message_builder
    _message_builder = builder


def get_message_builder() -> MessageBuilder:
    """Return the registered message builder."""
    return _message_builder


class Channel(ABC):
    """Base class for OTP delivery channels."""

    name: str = ""
    destination_field: str = "identifier"

    def destination_for(self, account) -> Optional[str]:
        """Read this channel's destination address from the account."""
        return getattr(account, self.destination_field, None)

    @abstractmethod
    def send(self, payload: DeliveryPayload) -> None:
        """Deliver the payload.

        Raises:
            ChannelSendError: If delivery fails.
        """


class LogChannel(Channel):
    """Mock channel that only logs deliveries."""

    name = "log"

    def send(self, payload: DeliveryPayload) -> None:
        logger.info("Mock OTP sent to %s: %s", payload.destination, payload.message)


class SMSChannel(Channel):
    """Base class for SMS channels with a region allow-list."""

    def __init__(self, allowed_countries: Optional[Iterable[str]] = None):
        self.allowed_countries = (
            SMS_OTP_ALLOWED_COUNTRIES
            if allowed_countries is None
            else [code.upper() for code in allowed_countries]
        )

    def check_region(self, phone_number: str) -> None:
        """Refuse numbers outside the allowed countries."""
        if not self.allowed_countries:
            return

        try:
            region_code, country_name = get_phonenumber_region_code(phone_number)
        except phonenumbers.NumberParseException as e:
            logger.error("Cannot determine region of SMS destination: %s", e)
            raise ChannelSendError("Invalid phone number for SMS delivery.") from e

        if region_code not in self.allowed_countries:
            logger.info(
                "SMS OTP blocked for country: %s with region: %s",
                country_name,
                region_code,
            )
            raise ChannelSendError("SMS OTP service unavailable for your region.")

    def send(self, payload: DeliveryPayload) -> None:
        self.check_region(payload.destination)
        self.deliver(payload)

    @abstractmethod
    def deliver(self, payload: DeliveryPayload) -> None:
        """Send the SMS."""


class TwilioSMSChannel(SMSChannel):
    """SMS delivery via Twilio."""

    name = "sms"

    def __init__(
        self,
        account_sid: str = None,
        auth_token: str = None,
        from_number: str = None,
        allowed_countries: Optional[Iterable[str]] = None,
    ):
        super().__init__(allowed_countries)
        self.account_sid = account_sid or TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or TWILIO_AUTH_TOKEN
        self.from_number = from_number or TWILIO_PHONE_NUMBER

    def deliver(self, payload: DeliveryPayload) -> None:
        try:
            client = Client(self.account_sid, self.auth_token)
            message = client.messages.create(
                body=payload.message, from_=self.from_number, to=payload.destination
            )
        except (TwilioException, requests.RequestException) as e:
            logger.error("Twilio error: %s", e)
            raise ChannelSendError("Failed to send OTP via Twilio.") from e

        if message.status not in ("accepted", "queued", "sending", "sent"):
            logger.error("Twilio send failed: %s", message.status)
            raise ChannelSendError(f"Twilio returned status '{message.status}'.")

        logger.info("OTP sent via Twilio")


class QueuedroidSMSChannel(SMSChannel):
    """SMS delivery via Queuedroid."""

    name = "queuedroid"

    def __init__(
        self,
        api_url: str = None,
        api_key: str = None,
        exchange_id: str = None,
        queue_id: str = None,
        allowed_countries: Optional[Iterable[str]] = None,
    ):
        super().__init__(allowed_countries)
        self.api_url = api_url or QUEUEDROID_API_URL
        self.api_key = api_key or QUEUEDROID_API_KEY
        self.exchange_id = exchange_id or QUEUEDROID_EXCHANGE_ID
        self.queue_id = queue_id or QUEUEDROID_QUEUE_ID

    def deliver(self, payload: DeliveryPayload) -> None:
        data = {
            "content": payload.message,
            "exchange_id": self.exchange_id,
            "queue_id": self.queue_id,
            "phone_number": payload.destination,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = requests.post(
                self.api_url, json=data, headers=headers, timeout=10
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Error sending message via Queuedroid: %s", exc)
            raise ChannelSendError("Failed to send OTP via Queuedroid.") from exc

        logger.info("Message sent successfully via Queuedroid.")


class EmailChannel(Channel):
    """Email delivery via the HTTP email service."""

    name = "email"
    destination_field = "email"

    def __init__(
        self,
        service_url: str = None,
        api_key: str = None,
        sender_address: str = None,
    ):
        self.service_url = service_url or EMAIL_SERVICE_URL
        self.api_key = api_key or EMAIL_SERVICE_API_KEY
        self.sender_address = sender_address or EMAIL_VERIFICATION_SENDER_ADDRESS

    def send(self, payload: DeliveryPayload) -> None:
        if not self.service_url or not self.api_key:
            logger.error("Email service not configured")
            raise ChannelSendError("Email service unavailable.")

        if payload.ttl is None or payload.expires_at is None:
            logger.error("Email delivery requires the token expiry")
            raise ChannelSendError("Token expiry unknown for email delivery.")

        expiry_minutes = max(1, round(payload.ttl.total_seconds() / 60))
        expiration_time_words = (
            f"{expiry_minutes} minute{'s' if expiry_minutes != 1 else ''}"
        )

        body = {
            "from_email": self.sender_address,
            "to_email": payload.destination,
            "subject": EMAIL_SUBJECT,
            "template": "otp",
            "substitutions": {
                "project_name": OTP_PROJECT_NAME,
                "expiration_time": expiration_time_words,
                "expiration_date_time": payload.expires_at.strftime(
                    "%B %d, %Y at %I:%M %p %Z"
                ),
                "otp_code": payload.token,
                "message": payload.message,
            },
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                self.service_url, json=body, headers=headers, timeout=30
            )
            response.raise_for_status()
            response_data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Email service request error: %s", e)
            raise ChannelSendError("Failed to send OTP via email.") from e

        if not response_data.get("success"):
            logger.error(
                "Email service returned error: %s", response_data.get("message", "")
            )
            raise ChannelSendError("Failed to send OTP via email.")

        logger.info("OTP sent via email: %s", response_data.get("message", ""))


BUILTIN_CHANNELS = {
    LogChannel.name: LogChannel,
    TwilioSMSChannel.name: TwilioSMSChannel,
    QueuedroidSMSChannel.name: QueuedroidSMSChannel,
    EmailChannel.name: EmailChannel,
}


class ChannelDispatcher:
    """Hands a token to an ordered list of channels.

    Delivery is fail-fast: the first channel error stops the loop, and channels
    that already delivered are not rolled back.
    """

    def __init__(
        self,
        channels: Dict[str, Channel],
        default_channels: Optional[List[str]] = None,
        message_builder: Optional[MessageBuilder] = None,
    ):
        self.channels = dict(channels)
        self.default_channels = list(default_channels or [])
        self.message_builder = message_builder or get_message_builder()

    def resolve(
        self, names: Optional[Iterable[str]] = None
    ) -> List[Tuple[str, Channel]]:
        """Look up channels by name, falling back to the defaults.

        Raises:
            UnknownChannelError: If a name is not registered.
        """
        names = list(names or self.default_channels)
        resolved = []
        for name in names:
            channel = self.channels.get(name)
            if channel is None:
                raise UnknownChannelError(name)
            resolved.append((name, channel))
        return resolved

    def dispatch(
        self,
        account,
        token: str,
        channels: Optional[Iterable[str]] = None,
        ttl: Optional[datetime.timedelta] = None,
        expires_at: Optional[datetime.datetime] = None,
    ) -> None:
        """Deliver token to every channel in order.

        ``ttl`` and ``expires_at`` describe the stored token and are passed on
        to channels that tell the recipient when the code expires.

        Raises:
            UnknownChannelError: If a channel name is not registered.
            DeliveryFailedError: If a channel fails; chained to its error.
        """
        message = self.message_builder(account, token)

        for name, channel in self.resolve(channels):
            destination = channel.destination_for(account)
            try:
                if not destination:
                    raise ChannelSendError(
                        f"Account has no '{channel.destination_field}' to deliver to."
                    )
                channel.send(
                    DeliveryPayload(
                        destination=destination,
                        token=token,
                        message=message,
                        ttl=ttl,
                        expires_at=expires_at,
                    )
                )
            except ChannelSendError as e:
                logger.error("Delivery via '%s' failed: %s", name, e)
                raise DeliveryFailedError(name, str(e)) from e
            except Exception as e:
                logger.exception("Unexpected error delivering via '%s'", name)
                raise DeliveryFailedError(name) from e

            logger.debug("Delivered via '%s'.", name)


def load_channels() -> Dict[str, Channel]:
    """Instantiate the built-in channels plus any configured custom ones.

    ``OTP_CUSTOM_CHANNELS`` maps a channel name to a dotted class path; a
    custom entry replaces a built-in with the same name.
    """
    channel_classes = dict(BUILTIN_CHANNELS)
    for name, dotted_path in get_json_config("OTP_CUSTOM_CHANNELS").items():
        channel_classes[name] = import_string(dotted_path)

    channels = {}
    for name, channel_class in channel_classes.items():
        channels[name] = channel_class()
    logger.debug("Loaded channels: %s", sorted(channels))
    return channels


def create_dispatcher(
    channels: Optional[Dict[str, Channel]] = None,
    message_builder: Optional[MessageBuilder] = None,
) -> ChannelDispatcher:
    """Build a dispatcher from configuration."""
    return ChannelDispatcher(
        channels if channels is not None else load_channels(),
        default_channels=get_list_config("OTP_DEFAULT_CHANNELS", ["sms"]),
        message_builder=message_builder,
    )
