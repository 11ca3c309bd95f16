"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Testing:
    In tests, clear the cache to force reload:
    get_outbox_settings.cache_clear()

    Or construct settings directly with overrides:
    settings = OutboxSettings(backend="mongo")
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .mongo import MongoSettings
from .outbox import OutboxSettings
from .postgres import PostgresSettings
from .sqs import SQSSettings


@lru_cache(maxsize=1)
def get_outbox_settings() -> OutboxSettings:
    """Get cached outbox settings.

    Returns:
        Validated and frozen OutboxSettings instance.
    """
    return OutboxSettings()


@lru_cache(maxsize=1)
def get_sqs_settings() -> SQSSettings:
    """Get cached SQS settings.

    Returns:
        Validated and frozen SQSSettings instance.
    """
    return SQSSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> PostgresSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen PostgresSettings instance.
    """
    return PostgresSettings()


@lru_cache(maxsize=1)
def get_mongo_settings() -> MongoSettings:
    """Get cached MongoDB settings.

    Returns:
        Validated and frozen MongoSettings instance.
    """
    return MongoSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Drop every cached settings instance."""
    get_outbox_settings.cache_clear()
    get_sqs_settings.cache_clear()
    get_db_settings.cache_clear()
    get_mongo_settings.cache_clear()
    get_logging_settings.cache_clear()
