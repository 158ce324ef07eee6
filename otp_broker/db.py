# SPDX-License-Identifier: GPL-3.0-only
"""Database connection."""

from peewee import SqliteDatabase
from playhouse.mysql_ext import MySQLConnectorDatabase

from base_logger import get_logger
from otp_broker.utils import ensure_database_exists, get_configs

logger = get_logger(__name__)

DATABASE_CONFIGS = {
    "mode": get_configs("MODE", default_value="production"),
    "host": get_configs("MYSQL_HOST"),
    "user": get_configs("MYSQL_USER"),
    "password": get_configs("MYSQL_PASSWORD"),
    "database": get_configs("MYSQL_DATABASE"),
    "sqlite_path": get_configs("SQLITE_DATABASE_PATH", default_value="otp_broker.db"),
}


def connect():
    """Connect to the configured database.

    Returns:
        SqliteDatabase in testing mode, otherwise MySQLConnectorDatabase.
    """
    if DATABASE_CONFIGS["mode"] == "testing":
        logger.debug("Using SQLite database for testing.")
        return SqliteDatabase(
            DATABASE_CONFIGS["sqlite_path"], pragmas={"foreign_keys": 1}
        )
    return connect_to_mysql()


@ensure_database_exists(
    DATABASE_CONFIGS["host"],
    DATABASE_CONFIGS["user"],
    DATABASE_CONFIGS["password"],
    DATABASE_CONFIGS["database"],
)
def connect_to_mysql():
    """Connect to the MySQL database, creating it if needed."""
    logger.debug("Connecting to MySQL database %s.", DATABASE_CONFIGS["database"])
    return MySQLConnectorDatabase(
        DATABASE_CONFIGS["database"],
        user=DATABASE_CONFIGS["user"],
        password=DATABASE_CONFIGS["password"],
        host=DATABASE_CONFIGS["host"],
        charset="utf8mb4",
        collation="utf8mb4_unicode_ci",
    )
