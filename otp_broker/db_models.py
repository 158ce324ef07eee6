# SPDX-License-Identifier: GPL-3.0-only
"""Peewee models for tokens and accounts."""

import datetime
from typing import Dict, Type

from peewee import CharField, DateTimeField, Model

from otp_broker.db import connect

database = connect()


class BaseModel(Model):
    """Base model bound to the configured database."""

    class Meta:
        database = database


class OTPToken(BaseModel):
    """Active token per (provider, identifier)."""

    provider = CharField(max_length=64)
    identifier = CharField(max_length=255)
    token = CharField(max_length=64)
    created_at = DateTimeField(default=datetime.datetime.now)
    expires_at = DateTimeField()

    class Meta:
        table_name = "otp_tokens"
        indexes = ((("provider", "identifier"), True),)


class Account(BaseModel):
    """Account resolved from an identifier.

    Everything except ``identifier`` is nullable so that verification can
    happen before registration is complete.
    """

    identifier = CharField(max_length=255, unique=True)
    verified_at = DateTimeField(null=True)
    name = CharField(null=True)
    email = CharField(null=True)
    created_at = DateTimeField(default=datetime.datetime.now)

    @property
    def is_verified(self) -> bool:
        """Whether the identifier has been verified."""
        return self.verified_at is not None


class User(Account):
    """Default provider accounts."""

    class Meta:
        table_name = "users"


_account_models: Dict[str, Type[Account]] = {User._meta.table_name: User}


def account_model_for(table_name: str) -> Type[Account]:
    """Return an Account model bound to ``table_name``.

    Models are memoized per table, so the same class comes back on every call.
    """
    model = _account_models.get(table_name)
    if model is None:
        class_name = "".join(part.title() for part in table_name.split("_"))
        model = type(
            f"{class_name}Account",
            (Account,),
            {
                "__module__": __name__,
                "Meta": type("Meta", (), {"table_name": table_name}),
            },
        )
        _account_models[table_name] = model
    return model
