# SPDX-License-Identifier: GPL-3.0-only
"""Utilities module."""

import importlib
import json
import os
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

import mysql.connector
import phonenumbers
from phonenumbers import geocoder
from peewee import DatabaseError

from base_logger import get_logger

logger = get_logger(__name__)


def create_tables(models: List[Any]) -> None:
    """Create tables for given Peewee models if they don't exist.

    Args:
        models: List of Peewee Model classes.
    """
    if not models:
        logger.warning("No models provided for table creation.")
        return

    try:
        databases = {}
        for model in models:
            database = model._meta.database
            databases.setdefault(database, []).append(model)

        for database, db_models in databases.items():
            with database.atomic():
                existing_tables = set(database.get_tables())
                tables_to_create = [
                    model
                    for model in db_models
                    if model._meta.table_name not in existing_tables
                ]

                if tables_to_create:
                    database.create_tables(tables_to_create)
                    logger.info(
                        "Created tables: %s",
                        [model._meta.table_name for model in tables_to_create],
                    )
                else:
                    logger.debug("No new tables to create.")

    except DatabaseError as e:
        logger.error("An error occurred while creating tables: %s", e)
        raise


def ensure_database_exists(
    host: str, user: str, password: str, database_name: str
) -> Callable:
    """Decorator to ensure MySQL database exists before function execution.

    Args:
        host: MySQL server host address.
        user: MySQL username.
        password: MySQL password.
        database_name: Database name.

    Returns:
        Decorated function.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                with mysql.connector.connect(
                    host=host,
                    user=user,
                    password=password,
                    charset="utf8mb4",
                    collation="utf8mb4_unicode_ci",
                ) as connection:
                    with connection.cursor() as cursor:
                        sql = "CREATE DATABASE IF NOT EXISTS " + database_name
                        cursor.execute(sql)

            except mysql.connector.Error as error:
                logger.error("Failed to create database: %s", error)

            return func(*args, **kwargs)

        return wrapper

    return decorator


def get_configs(config_name: str, strict: bool = False, default_value: str = "") -> str:
    """Retrieve configuration from environment variables.

    Args:
        config_name: Configuration name.
        strict: If True, raises error if not found.
        default_value: Default value if not found and not strict.

    Returns:
        Configuration value.

    Raises:
        KeyError: If strict is True and config not found.
        ValueError: If strict is True and value is empty.
    """
    try:
        value = (
            os.environ[config_name]
            if strict
            else os.environ.get(config_name) or default_value
        )
        if strict and (value is None or value.strip() == ""):
            raise ValueError(f"Configuration '{config_name}' is missing or empty.")
        return value
    except KeyError as error:
        logger.error(
            "Configuration '%s' not found in environment variables: %s",
            config_name,
            error,
        )
        raise
    except ValueError as error:
        logger.error("Configuration '%s' is empty: %s", config_name, error)
        raise


def get_int_config(key: str, default_value: int) -> int:
    """Retrieve config value as integer.

    Raises:
        ValueError: If the value is not an integer.
    """
    value = get_configs(key, default_value=str(default_value))
    try:
        return int(value)
    except ValueError:
        logger.error("Configuration '%s' must be an integer, got '%s'.", key, value)
        raise


def get_list_config(key: str, default_value: Optional[List[str]] = None) -> List[str]:
    """Retrieve config value as list of strings.

    Args:
        key: Configuration key.
        default_value: Default if missing.

    Returns:
        List of strings.
    """
    value = get_configs(key)
    if not value:
        return default_value or []

    items = value.strip("[]")
    return [c.strip().strip("'\"") for c in items.split(",") if c.strip()]


def get_json_config(key: str, default_value: Optional[Dict] = None) -> Dict[str, Any]:
    """Retrieve config value as a JSON object.

    Raises:
        ValueError: If the value is not a JSON object.
    """
    value = get_configs(key)
    if not value:
        return dict(default_value or {})

    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        logger.error("Error decoding JSON from configuration '%s': %s", key, e)
        raise ValueError(f"Configuration '{key}' is not valid JSON.") from e

    if not isinstance(parsed, dict):
        raise ValueError(f"Configuration '{key}' must be a JSON object.")
    return parsed


def set_configs(config_name: str, config_value: Any) -> None:
    """Set environment variable configuration.

    Args:
        config_name: Configuration name.
        config_value: Configuration value.

    Raises:
        ValueError: If config_name is empty.
    """
    if not config_name:
        error_message = (
            f"Cannot set configuration. Invalid config_name '{config_name}'."
        )
        logger.error(error_message)
        raise ValueError(error_message)

    if isinstance(config_value, bool):
        config_value = str(config_value).lower()
    os.environ[config_name] = str(config_value)


def import_string(dotted_path: str) -> Any:
    """Import a class or attribute from a dotted module path.

    Args:
        dotted_path: Path such as ``package.module.ClassName``.

    Returns:
        The imported attribute.

    Raises:
        ImportError: If the module or attribute cannot be found.
    """
    try:
        module_path, attr_name = dotted_path.rsplit(".", 1)
    except ValueError as e:
        raise ImportError(f"'{dotted_path}' is not a valid dotted path.") from e

    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr_name)
    except AttributeError as e:
        raise ImportError(
            f"Module '{module_path}' has no attribute '{attr_name}'."
        ) from e


def normalize_phone_number(phone_number: str, region: Optional[str] = None) -> str:
    """Normalize a phone number to E.164.

    Args:
        phone_number: Raw phone number.
        region: Region hint for numbers without a leading '+'.

    Returns:
        E.164 formatted phone number.

    Raises:
        ValueError: If the number cannot be parsed or is not valid.
    """
    try:
        parsed_number = phonenumbers.parse(phone_number, region)
    except phonenumbers.phonenumberutil.NumberParseException as e:
        raise ValueError(f"The phone number is invalid. {e}") from e

    if not phonenumbers.is_valid_number(parsed_number):
        raise ValueError("The phone number is invalid.")

    return phonenumbers.format_number(
        parsed_number, phonenumbers.PhoneNumberFormat.E164
    )


def get_phonenumber_region_code(phone_number: str) -> tuple:
    """
    Get the region code for a given phone number.

    Args:
        phone_number (str): The phone number in E.164 format.

    Returns:
        tuple: A tuple containing the region code (str) and country name (str).
    """
    parsed_number = phonenumbers.parse(phone_number)
    region_code = geocoder.region_code_for_number(parsed_number)
    country_name = geocoder.description_for_number(parsed_number, "en")
    return region_code, country_name
