"""Test module for the CLI commands."""

import pytest

from scripts import cli


def test_send_and_validate_commands(broker, sms_channel):
    """Test CLI send and validate drive the broker."""
    cli.send(broker, "+989389599530", provider="admins", channels=["sms"])

    cli.validate(
        broker, "+989389599530", sms_channel.sent[-1].token, provider="admins"
    )

    account = broker.providers.get("admins").model.get()
    assert account.is_verified is True


def test_init_db_creates_tables(broker, database):
    """Test init-db creates token and provider tables."""
    database.drop_tables([provider.model for provider in broker.providers])

    cli.init_db(broker)

    assert {"otp_tokens", "users", "admins"} <= set(database.get_tables())


@pytest.mark.parametrize("driver", ["database"])
def test_purge_command(broker, clock):
    """Test purge removes expired rows."""
    from otp_broker.db_models import OTPToken

    broker.send("+989389599530")
    clock.advance(minutes=10)

    cli.purge(broker, provider="users")

    assert OTPToken.select().count() == 0
