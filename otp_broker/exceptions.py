# SPDX-License-Identifier: GPL-3.0-only
"""Broker exceptions."""

from otp_broker.types import InvalidTokenReason


class OTPBrokerError(Exception):
    """Base exception for broker operations."""


class InvalidOTPTokenException(OTPBrokerError):
    """Raised when a presented token does not validate."""

    MESSAGES = {
        InvalidTokenReason.MISSING_OR_EXPIRED: "OTP not found or expired. Request a new one.",
        InvalidTokenReason.MISMATCH: "Incorrect OTP. Try again.",
    }

    def __init__(self, reason: InvalidTokenReason):
        super().__init__(self.MESSAGES[reason])
        self.reason = reason


class UnknownProviderError(OTPBrokerError):
    """Raised when selecting a provider that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown OTP provider '{name}'.")
        self.name = name


class UnknownChannelError(OTPBrokerError):
    """Raised when a channel name is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown OTP channel '{name}'.")
        self.name = name


class ChannelSendError(OTPBrokerError):
    """Raised by a channel when delivery fails."""


class DeliveryFailedError(OTPBrokerError):
    """Raised by send when a channel fails to deliver."""

    def __init__(self, channel: str, message: str = "Failed to send OTP."):
        super().__init__(f"{message} (channel: {channel})")
        self.channel = channel
