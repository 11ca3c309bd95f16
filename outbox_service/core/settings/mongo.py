"""MongoDB settings for the document-store outbox."""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoSettings(BaseSettings):
    """MongoDB connection settings.

    Environment variables use MONGO_ prefix.
    Transactions need a replica set or sharded cluster, so the URI should
    point at one (``mongodb://host:27017/?replicaSet=rs0``).
    """

    uri: str = Field(
        default="mongodb://localhost:27017/?replicaSet=rs0",
        min_length=1,
        description="MongoDB connection string.",
    )
    db_name: str | None = Field(
        default=None,
        max_length=63,
        description="Database holding business collections and the outbox.",
    )
    max_pool_size: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Maximum connections in the driver pool.",
    )
    server_selection_timeout_ms: int = Field(
        default=30_000,
        ge=100,
        le=300_000,
        description="How long the driver waits for a suitable server.",
    )

    model_config = SettingsConfigDict(
        env_prefix="MONGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``AsyncMongoClient``."""
        return {
            "maxPoolSize": self.max_pool_size,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "tz_aware": True,
        }
