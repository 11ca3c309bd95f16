"""Pydantic Settings v2 configuration.

One settings model per concern, each reading its own environment prefix
(OUTBOX_, SQS_, DB_, MONGO_, LOG_) plus an optional ``.env`` file:

    from outbox_service.core.settings import get_sqs_settings

    settings = get_sqs_settings()
    print(settings.queue_url)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import (
    clear_settings_cache,
    get_db_settings,
    get_logging_settings,
    get_mongo_settings,
    get_outbox_settings,
    get_sqs_settings,
)
from .logs import LoggingSettings
from .mongo import MongoSettings
from .outbox import OutboxBackend, OutboxSettings
from .postgres import PostgresSettings
from .sqs import SQSSettings

__all__ = [
    "LoggingSettings",
    "MongoSettings",
    "OutboxBackend",
    "OutboxSettings",
    "PostgresSettings",
    "SQSSettings",
    "clear_settings_cache",
    "get_db_settings",
    "get_logging_settings",
    "get_mongo_settings",
    "get_outbox_settings",
    "get_sqs_settings",
]
