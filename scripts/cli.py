# SPDX-License-Identifier: GPL-3.0-only
"""OTP Broker CLI"""

import argparse
import sys

from base_logger import get_logger
from otp_broker.broker import create_broker
from otp_broker.db_models import OTPToken
from otp_broker.exceptions import OTPBrokerError
from otp_broker.token_store import DatabaseTokenStore
from otp_broker.utils import create_tables, normalize_phone_number

logger = get_logger("otp_broker.cli")


def init_db(broker):
    """Create the token table and every provider table."""
    create_tables([OTPToken] + [provider.model for provider in broker.providers])
    logger.info("Database tables ready.")


def send(broker, phone_number, provider=None, channels=None):
    """Send an OTP to a phone number."""
    if provider:
        broker.use_provider(provider)
    if channels:
        broker.channel(channels)

    account = broker.send(phone_number)
    logger.info("OTP sent. Account verified: %s", account.is_verified)


def validate(broker, phone_number, token, provider=None):
    """Validate an OTP for a phone number."""
    if provider:
        broker.use_provider(provider)

    account = broker.validate(phone_number, token)
    logger.info("OTP verified. Account verified: %s", account.is_verified)


def purge(broker, provider=None):
    """Delete expired token rows."""
    token_store = broker.providers.get(provider).token_store
    if not isinstance(token_store, DatabaseTokenStore):
        logger.info("Provider uses the cache driver; nothing to purge.")
        return
    token_store.purge_expired()


def main():
    """Entry function"""

    parser = argparse.ArgumentParser(description="OTP Broker CLI")
    subparsers = parser.add_subparsers(dest="command", description="Expected commands")

    subparsers.add_parser("init-db", help="Creates the database tables.")

    send_parser = subparsers.add_parser("send", help="Sends an OTP.")
    send_parser.add_argument(
        "-n", "--phonenumber", type=str, help="Recipient's phone number.", required=True
    )
    send_parser.add_argument("-p", "--provider", type=str, help="Provider name.")
    send_parser.add_argument(
        "-c", "--channel", action="append", help="Channel name (repeatable)."
    )

    validate_parser = subparsers.add_parser("validate", help="Validates an OTP.")
    validate_parser.add_argument(
        "-n", "--phonenumber", type=str, help="Phone number.", required=True
    )
    validate_parser.add_argument(
        "-t", "--token", type=str, help="OTP to validate.", required=True
    )
    validate_parser.add_argument("-p", "--provider", type=str, help="Provider name.")

    purge_parser = subparsers.add_parser("purge", help="Deletes expired tokens.")
    purge_parser.add_argument("-p", "--provider", type=str, help="Provider name.")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    broker = create_broker()

    try:
        if args.command == "init-db":
            init_db(broker)
        elif args.command == "send":
            send(
                broker,
                normalize_phone_number(args.phonenumber),
                provider=args.provider,
                channels=args.channel,
            )
        elif args.command == "validate":
            validate(
                broker,
                normalize_phone_number(args.phonenumber),
                args.token,
                provider=args.provider,
            )
        elif args.command == "purge":
            purge(broker, provider=args.provider)
    except (OTPBrokerError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
