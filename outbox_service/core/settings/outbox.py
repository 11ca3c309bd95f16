"""Outbox engine settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OutboxBackend = Literal["postgres", "mongo"]


class OutboxSettings(BaseSettings):
    """Outbox table/collection and relay behaviour.

    Environment variables use OUTBOX_ prefix.
    Example: OUTBOX_BACKEND=mongo, OUTBOX_COLLECTION=outbox
    """

    backend: OutboxBackend = Field(
        default="postgres",
        description="Storage backend holding business data and the outbox (postgres|mongo).",
    )
    collection: str = Field(
        default="outbox",
        min_length=1,
        max_length=63,
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Outbox table (relational) or collection (document) name.",
    )
    drain_after_commit: bool = Field(
        default=True,
        description="Run one drain pass right after each committed outbox transaction.",
    )

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
