"""Shared fixtures for the OTP broker tests."""

from datetime import datetime, timedelta

import pytest
from peewee import SqliteDatabase

from otp_broker.utils import set_configs

set_configs("MODE", "testing")

from otp_broker.channels import Channel, ChannelDispatcher  # noqa: E402
from otp_broker.exceptions import ChannelSendError  # noqa: E402
from otp_broker.generator import TokenGenerator  # noqa: E402
from otp_broker.utils import create_tables  # noqa: E402


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingChannel(Channel):
    """Channel that keeps every payload it receives."""

    def __init__(self, name="sms", destination_field="identifier"):
        self.name = name
        self.destination_field = destination_field
        self.sent = []

    def send(self, payload):
        self.sent.append(payload)


class FailingChannel(Channel):
    """Channel that always fails."""

    name = "failing"

    def send(self, payload):
        raise ChannelSendError("Gateway unavailable.")


class SequenceGenerator(TokenGenerator):
    """Generator returning predefined tokens in order."""

    def __init__(self, values):
        super().__init__(length=len(values[0]))
        self.values = list(values)

    def generate(self):
        return self.values.pop(0)


@pytest.fixture()
def clock():
    """Controllable clock."""
    return FakeClock()


@pytest.fixture()
def database(tmp_path):
    """Setup and teardown test database."""
    from otp_broker.db_models import OTPToken, account_model_for

    models = [OTPToken, account_model_for("users"), account_model_for("admins")]

    test_db = SqliteDatabase(
        str(tmp_path / "test.db"), pragmas={"journal_mode": "wal"}
    )
    test_db.bind(models)
    test_db.connect()
    create_tables(models)

    yield test_db

    test_db.drop_tables(models)
    test_db.close()


@pytest.fixture(params=["cache", "database"])
def driver(request):
    """Token storage driver under test."""
    return request.param


@pytest.fixture()
def sms_channel():
    """Recording default channel."""
    return RecordingChannel("sms")


@pytest.fixture()
def broker(database, driver, clock, sms_channel):
    """Broker with 'users' and 'admins' providers on the selected driver."""
    from otp_broker.broker import OTPBroker
    from otp_broker.providers import ProviderRegistry, build_provider
    from otp_broker.token_store import create_token_cache

    cache = create_token_cache(clock=clock)
    registry = ProviderRegistry("users")
    for name in ("users", "admins"):
        registry.register(
            build_provider(name, {"table": name}, driver, cache=cache, clock=clock)
        )

    dispatcher = ChannelDispatcher(
        {"sms": sms_channel, "failing": FailingChannel()}, default_channels=["sms"]
    )
    return OTPBroker(
        registry,
        dispatcher,
        generator=TokenGenerator(length=5),
        ttl=timedelta(minutes=5),
    )


@pytest.fixture()
def sequence_generator():
    """Factory for generators with predefined tokens."""
    return SequenceGenerator


@pytest.fixture()
def recording_channel():
    """Factory for recording channels."""
    return RecordingChannel


@pytest.fixture()
def failing_channel():
    """Channel that always fails."""
    return FailingChannel()
